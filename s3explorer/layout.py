"""Viewport and selection engine for the listing panels.

Everything here is pure: terminal dimensions come in as arguments so the
render loop can hand over its current size on every redraw.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from rich.text import Text

from .s3 import BucketInfo, NodeInfo

LOGGER = logging.getLogger(__name__)

# Rows kept free below the listing for the help panel.
RESERVED_BOTTOM_ROWS = 5
RIGHT_MARGIN = 2
MIN_LIST_HEIGHT = 2
SCROLL_CONTEXT = 2
# Top and bottom border rows of the bordered listing.
BORDER_ROWS = 2

BUCKET_LIST_TITLE = "S3 Buckets"
ITEM_STYLE = "yellow"
SELECTED_STYLE = "on blue"
ELLIPSIS = "..."
SIZE_UNITS = ["B", "KB", "MB", "GB", "TB", "PB"]

ENTRY_BUCKET = "bucket"
ENTRY_DIRECTORY = "directory"
ENTRY_FILE = "file"
ENTRY_STRING = "string"

_LINE_INDEX = re.compile(r"^\[(\d+)\] ")


class TerminalTooSmall(Exception):
    """The terminal is too short to render a listing."""


@dataclass(frozen=True)
class TerminalSize:
    width: int
    height: int


@dataclass(frozen=True)
class Entry:
    kind: str
    display: str
    size: Optional[int] = None


def bucket_entry(bucket: BucketInfo) -> Entry:
    return Entry(kind=ENTRY_BUCKET, display=bucket.display_string)


def node_entry(node: NodeInfo) -> Entry:
    if node.is_dir:
        return Entry(kind=ENTRY_DIRECTORY, display=node.display_string)
    return Entry(kind=ENTRY_FILE, display=node.display_string, size=node.size)


def string_entry(value: str) -> Entry:
    return Entry(kind=ENTRY_STRING, display=value)


def format_size(size: float, precision: int = 1) -> str:
    """Scale a byte count to the largest unit that keeps it under 1024."""
    if size < 0:
        raise ValueError(f"size must be non-negative, got {size}")
    precision = max(0, int(precision))
    value = float(size)
    for unit in SIZE_UNITS:
        if round(value, precision) < 1024 or unit == SIZE_UNITS[-1]:
            return f"{value:.{precision}f} {unit}"
        value /= 1024
    return f"{value:.{precision}f} {SIZE_UNITS[-1]}"


def truncate_filename(name: str, width: int) -> tuple[str, int]:
    """Cut ``name`` to a quarter of ``width`` and return the padding to the size column."""
    quarter = max(0, width // 4)
    if len(name) >= quarter:
        keep = quarter - len(ELLIPSIS)
        if keep >= 0:
            truncated = f"{name[:keep]}{ELLIPSIS}"
        else:
            truncated = "." * quarter
    else:
        truncated = name
    space = max(0, width // 2 - len(truncated))
    return truncated, space


def format_entry(entry: Entry, width: int) -> str:
    if entry.kind == ENTRY_FILE and entry.size is not None:
        truncated, space = truncate_filename(entry.display, width)
        return f"{truncated}{' ' * space}{format_size(entry.size, 1)}"
    if entry.kind in {ENTRY_BUCKET, ENTRY_DIRECTORY, ENTRY_STRING, ENTRY_FILE}:
        return entry.display
    raise ValueError(f"unknown entry kind: {entry.kind!r}")


def list_height(count: int, term_height: int) -> int:
    return min(count + 2, term_height - RESERVED_BOTTOM_ROWS)


def have_term_space(height: int) -> bool:
    if height < MIN_LIST_HEIGHT:
        LOGGER.warning("Terminal height is too small (%d rows for the listing)", height)
        return False
    return True


def visible_rows(height: int) -> int:
    return max(1, height - BORDER_ROWS)


def clamp_selection(selection: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(selection, count - 1))


@dataclass(frozen=True)
class ListLine:
    index: int
    text: str
    selected: bool = False

    @property
    def label(self) -> str:
        return f"[{self.index}] {self.text}"

    def render(self) -> Text:
        return Text(self.label, style=SELECTED_STYLE if self.selected else "")


def parse_line_index(label: str) -> int:
    match = _LINE_INDEX.match(label)
    if match is None:
        raise ValueError(f"not a listing line: {label!r}")
    return int(match.group(1))


def directory_display_listing(
    objects: Sequence[str], selection: int, term_height: int
) -> list[ListLine]:
    """Return the window of ``objects`` to draw around ``selection``.

    The window holds only the lines that fit inside the bordered listing of
    ``list_height`` rows and always contains the selected line. Once the
    selection reaches the bottom of the viewport the window starts two lines
    above it, or lower when fewer rows are visible.
    """
    if not objects:
        return []
    selection = clamp_selection(selection, len(objects))
    listing = [
        ListLine(index=index, text=obj, selected=index == selection)
        for index, obj in enumerate(objects)
    ]

    max_height = list_height(len(objects), term_height)
    if not have_term_space(max_height):
        message = "Please expand the height of your terminal"
        LOGGER.warning(message)
        raise TerminalTooSmall(message)

    rows = visible_rows(max_height)
    start = 0
    if max_height <= selection + SCROLL_CONTEXT:
        start = max(0, selection - SCROLL_CONTEXT)
        if selection - start >= rows:
            start = selection - rows + 1
    return listing[start : start + rows]


@dataclass(frozen=True)
class ListPanel:
    title: str
    lines: tuple[ListLine, ...]
    height: int
    width: int
    y: int = 0
    error: Optional[str] = None

    def render(self) -> Text:
        text = Text("\n").join(line.render() for line in self.lines)
        text.stylize(ITEM_STYLE)
        return text

    @property
    def selected_line(self) -> Optional[ListLine]:
        for line in self.lines:
            if line.selected:
                return line
        return None


def _assemble(
    title: str,
    entries: Iterable[Entry],
    count: int,
    selection: int,
    size: TerminalSize,
) -> ListPanel:
    display_strings = [format_entry(entry, size.width) for entry in entries]
    try:
        listing = directory_display_listing(display_strings, selection, size.height)
    except TerminalTooSmall as exc:
        return ListPanel(title=title, lines=(), height=0, width=0, error=str(exc))
    return ListPanel(
        title=title,
        lines=tuple(listing),
        height=max(0, list_height(count, size.height)),
        width=max(0, size.width - RIGHT_MARGIN),
        y=0,
    )


def create_bucket_list(
    buckets: Sequence[BucketInfo], selection: int, size: TerminalSize
) -> ListPanel:
    return _assemble(
        BUCKET_LIST_TITLE,
        (bucket_entry(bucket) for bucket in buckets),
        len(buckets),
        selection,
        size,
    )


def create_directory_list(
    title: str, nodes: Sequence[NodeInfo], selection: int, size: TerminalSize
) -> ListPanel:
    return _assemble(
        title,
        (node_entry(node) for node in nodes),
        len(nodes),
        selection,
        size,
    )


def create_string_list(
    title: str, values: Sequence[str], selection: int, size: TerminalSize
) -> ListPanel:
    return _assemble(
        title,
        (string_entry(value) for value in values),
        len(values),
        selection,
        size,
    )
