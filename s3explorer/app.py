from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path, PurePosixPath
from typing import Optional

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.timer import Timer
from textual.widgets import Static
from textual.worker import Worker

from .layout import (
    ListPanel,
    TerminalSize,
    clamp_selection,
    create_bucket_list,
    create_directory_list,
)
from .prompts import (
    ERROR_DISPLAY_SECONDS,
    Panel,
    create_download_prompt,
    create_finished_download_prompt,
    render_error,
    render_help,
    render_message,
)
from .s3 import (
    DEFAULT_DOWNLOAD_DIR,
    BucketInfo,
    DownloadFailed,
    ListingUnavailable,
    NodeInfo,
    S3Service,
)

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED_NO_TERMINAL = 1
EXIT_FAILED_BUCKET_LISTING = 2

LOG_ENV_VAR = "S3EXPLORER_LOG"
LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
MESSAGE_DISPLAY_SECONDS = 2.0


class S3Explorer(App):
    CSS = """
    Screen {
        layers: base overlay;
    }

    #listing, #help, #message {
        position: absolute;
    }

    #listing {
        border: round cyan;
        border-title-color: white;
        color: yellow;
    }

    #help {
        border: round cyan;
        border-title-color: white;
        color: white;
    }

    #message {
        layer: overlay;
        border: round cyan;
        border-title-color: white;
        color: white;
        background: $surface;
    }

    #message.borderless {
        border: none;
    }
    """

    BINDINGS = [
        ("q", "quit_app", "Quit"),
        ("b", "back", "Back"),
        ("enter", "open", "Open"),
        ("up,k", "cursor_up", "Up"),
        ("down,j", "cursor_down", "Down"),
    ]

    def __init__(
        self,
        service: S3Service,
        buckets: Optional[list[BucketInfo]] = None,
        download_dir: Optional[Path] = None,
    ) -> None:
        super().__init__()
        self.service = service
        self.buckets: list[BucketInfo] = list(buckets) if buckets is not None else []
        self._buckets_loaded = buckets is not None
        self.nodes: list[NodeInfo] = []
        self.current_bucket: Optional[str] = None
        self.current_prefix = ""
        self.selection = 0
        self.download_dir = download_dir or DEFAULT_DOWNLOAD_DIR
        self.listing_panel: Optional[ListPanel] = None
        self.message_panel: Optional[Panel] = None
        self._bucket_selection = 0
        self._message_timer: Optional[Timer] = None
        self._download_worker: Optional[Worker] = None

    def compose(self) -> ComposeResult:
        yield Static("", id="listing")
        yield Static("", id="help")
        yield Static("", id="message")

    async def on_mount(self) -> None:
        self.listing_view = self.query_one("#listing", Static)
        self.help_view = self.query_one("#help", Static)
        self.message_view = self.query_one("#message", Static)
        self.message_view.display = False
        if not self._buckets_loaded:
            await self.load_buckets()
        self.refresh_listing()

    def on_resize(self, event: events.Resize) -> None:
        if not hasattr(self, "listing_view"):
            return
        self.refresh_listing()

    def terminal_size(self) -> TerminalSize:
        return TerminalSize(width=self.size.width, height=self.size.height)

    def location_title(self) -> str:
        return f"s3://{self.current_bucket}/{self.current_prefix}"

    def build_listing(self) -> ListPanel:
        size = self.terminal_size()
        if self.current_bucket is None:
            return create_bucket_list(self.buckets, self.selection, size)
        return create_directory_list(
            self.location_title(), self.nodes, self.selection, size
        )

    def refresh_listing(self) -> None:
        panel = self.build_listing()
        self.listing_panel = panel
        listing = self.listing_view
        self._apply_panel(self.help_view, render_help(self.terminal_size()))
        if panel.error:
            listing.display = False
            self.show_error(panel.error)
            return
        listing.display = True
        listing.border_title = panel.title
        listing.styles.height = panel.height
        listing.styles.width = panel.width
        listing.styles.offset = (0, panel.y)
        listing.update(panel.render())

    def _apply_panel(self, widget: Static, panel: Panel) -> None:
        widget.border_title = panel.label or None
        widget.set_class(not panel.border, "borderless")
        widget.styles.height = max(0, panel.height)
        widget.styles.width = max(0, panel.width)
        widget.styles.offset = (0, max(0, panel.y))
        widget.update(Text(panel.text))

    def show_panel(self, panel: Panel, timeout: Optional[float] = None) -> None:
        if self._message_timer is not None:
            self._message_timer.stop()
            self._message_timer = None
        self.message_panel = panel
        self._apply_panel(self.message_view, panel)
        self.message_view.display = True
        if timeout is not None:
            self._message_timer = self.set_timer(timeout, self.clear_message)

    def show_error(self, message: str) -> None:
        self.show_panel(render_error(message, self.terminal_size()), ERROR_DISPLAY_SECONDS)

    def clear_message(self) -> None:
        if self._message_timer is not None:
            self._message_timer.stop()
            self._message_timer = None
        self.message_panel = None
        self.message_view.display = False

    async def load_buckets(self) -> bool:
        try:
            buckets = await self.service.list_buckets()
        except ListingUnavailable as exc:
            LOGGER.warning("Bucket listing unavailable: %s", exc)
            self.show_error(str(exc))
            return False
        self.buckets = buckets
        self._buckets_loaded = True
        return True

    async def open_location(self, bucket: str, prefix: str, focus_key: str = "") -> bool:
        try:
            nodes = await self.service.list_nodes(bucket, prefix)
        except ListingUnavailable as exc:
            LOGGER.warning("Listing unavailable for s3://%s/%s: %s", bucket, prefix, exc)
            self.show_error(str(exc))
            return False
        if self.current_bucket is None:
            self._bucket_selection = self.selection
        self.current_bucket = bucket
        self.current_prefix = prefix
        self.nodes = nodes
        selection = 0
        if focus_key:
            for index, node in enumerate(nodes):
                if node.key == focus_key:
                    selection = index
                    break
        self.selection = clamp_selection(selection, len(nodes))
        self.refresh_listing()
        return True

    def show_bucket_list(self) -> None:
        self.current_bucket = None
        self.current_prefix = ""
        self.nodes = []
        self.selection = clamp_selection(self._bucket_selection, len(self.buckets))
        self.refresh_listing()

    def _parent_prefix(self, prefix: str) -> str:
        trimmed = prefix.rstrip("/")
        if "/" not in trimmed:
            return ""
        return trimmed.rsplit("/", 1)[0] + "/"

    def _collection_size(self) -> int:
        if self.current_bucket is None:
            return len(self.buckets)
        return len(self.nodes)

    def _move_selection(self, delta: int) -> None:
        self.selection = clamp_selection(self.selection + delta, self._collection_size())
        self.refresh_listing()

    def action_cursor_up(self) -> None:
        self._move_selection(-1)

    def action_cursor_down(self) -> None:
        self._move_selection(1)

    def _selected_index(self, count: int) -> int:
        line = self.listing_panel.selected_line if self.listing_panel else None
        if line is not None and line.index < count:
            return line.index
        return clamp_selection(self.selection, count)

    async def action_open(self) -> None:
        if self.current_bucket is None:
            if not self.buckets:
                return
            bucket = self.buckets[self._selected_index(len(self.buckets))]
            await self.open_location(bucket.name, "")
            return
        if not self.nodes:
            return
        node = self.nodes[self._selected_index(len(self.nodes))]
        if node.is_dir:
            await self.open_location(self.current_bucket, node.key)
            return
        self.start_download(node)

    async def action_back(self) -> None:
        if self.download_in_progress():
            self.cancel_download()
            return
        if self.current_bucket is None:
            return
        if not self.current_prefix:
            self.show_bucket_list()
            return
        await self.open_location(
            self.current_bucket,
            self._parent_prefix(self.current_prefix),
            focus_key=self.current_prefix,
        )

    def action_quit_app(self) -> None:
        if self.download_in_progress():
            self.cancel_download()
        self.exit()

    def download_destination(self, node: NodeInfo) -> str:
        name = PurePosixPath(node.key).name or "download"
        return str(self.download_dir / name)

    def download_in_progress(self) -> bool:
        return self._download_worker is not None and not self._download_worker.is_finished

    def start_download(self, node: NodeInfo) -> None:
        if self.current_bucket is None:
            return
        destination = self.download_destination(node)
        self.show_panel(create_download_prompt(destination, self.terminal_size()))
        self._download_worker = self.run_worker(
            self._download(self.current_bucket, node.key, destination),
            name="download",
            group="download",
            exclusive=True,
        )

    def cancel_download(self) -> None:
        if self._download_worker is None:
            return
        self._download_worker.cancel()
        self._download_worker = None
        self.show_panel(
            render_message("Download", "Download cancelled", self.terminal_size()),
            MESSAGE_DISPLAY_SECONDS,
        )

    async def _download(self, bucket: str, key: str, destination: str) -> None:
        try:
            path = await self.service.download_object(bucket, key, destination)
        except DownloadFailed as exc:
            self._download_worker = None
            self.show_error(str(exc))
            return
        self._download_worker = None
        LOGGER.info("Downloaded s3://%s/%s to %s", bucket, key, path)
        self.show_panel(
            create_finished_download_prompt(path, self.terminal_size()),
            MESSAGE_DISPLAY_SECONDS,
        )


def _configure_logging(log_file: Optional[str]) -> None:
    if log_file:
        logging.basicConfig(filename=log_file, level=logging.DEBUG, format=LOG_FORMAT)
        return
    # Nothing may write to the terminal the TUI owns.
    logging.getLogger("s3explorer").addHandler(logging.NullHandler())


def _has_terminal() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def _resolve_download_dir(value: Optional[str], service: S3Service) -> Path:
    if value:
        return Path(value).expanduser()
    return service.load_download_dir() or DEFAULT_DOWNLOAD_DIR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Terminal S3 bucket browser")
    parser.add_argument(
        "-p",
        "--profile",
        help="AWS profile to use (defaults to the standard credential chain)",
    )
    parser.add_argument(
        "--region",
        help="AWS region override for S3 client",
    )
    parser.add_argument(
        "--download-dir",
        help="Directory files are downloaded into (defaults to ~/Downloads)",
    )
    parser.add_argument(
        "--log-file",
        help=f"Write debug logs to this file (or set {LOG_ENV_VAR})",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.log_file or os.environ.get(LOG_ENV_VAR))

    if not _has_terminal():
        print("Error: s3explorer must run in an interactive terminal", file=sys.stderr)
        return EXIT_FAILED_NO_TERMINAL

    service = S3Service(profile=args.profile, region=args.region)
    try:
        buckets = asyncio.run(service.list_buckets())
    except ListingUnavailable as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILED_BUCKET_LISTING

    app = S3Explorer(
        service=service,
        buckets=buckets,
        download_dir=_resolve_download_dir(args.download_dir, service),
    )
    app.run()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
