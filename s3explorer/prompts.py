from __future__ import annotations

from dataclasses import dataclass

from .layout import RIGHT_MARGIN, TerminalSize

ARROWS = "↕️"
RETURN_ARROW = "↲"
HELP_TEXT = f"{ARROWS} navigate - {RETURN_ARROW} open - <q> quit - <b> back"

ERROR_DISPLAY_SECONDS = 2.0


@dataclass(frozen=True)
class Panel:
    label: str
    text: str
    height: int
    width: int
    y: int = 0
    border: bool = True


def _panel_width(size: TerminalSize) -> int:
    return max(0, size.width - RIGHT_MARGIN)


def render_help(size: TerminalSize) -> Panel:
    return Panel(
        label="Help",
        text=HELP_TEXT,
        height=3,
        width=len(HELP_TEXT) + 3,
        y=size.height - 5,
    )


def render_message(label: str, message: str, size: TerminalSize) -> Panel:
    return Panel(label=label, text=message, height=3, width=_panel_width(size))


def render_error(message: str, size: TerminalSize) -> Panel:
    """Error panel, shown for ``ERROR_DISPLAY_SECONDS`` by the render loop."""
    return render_message("Error", message, size)


def create_download_prompt(dest: str, size: TerminalSize) -> Panel:
    return Panel(
        label="",
        text=f"Downloading to {dest}",
        height=5,
        width=_panel_width(size),
        y=size.height - 10,
        border=False,
    )


def create_finished_download_prompt(dest: str, size: TerminalSize) -> Panel:
    return Panel(
        label="",
        text=f"File Downloaded: {dest}",
        height=5,
        width=_panel_width(size),
        y=size.height - 10,
        border=False,
    )
