import logging
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from s3explorer.app import (
    S3Explorer,
    _configure_logging,
    _resolve_download_dir,
)
from s3explorer.s3 import DEFAULT_DOWNLOAD_DIR, NodeInfo


class _NoopService:
    pass


class TestAppHelpers(unittest.TestCase):
    def test_parent_prefix(self) -> None:
        app = S3Explorer(service=_NoopService())
        self.assertEqual(app._parent_prefix("foo/bar/"), "foo/")
        self.assertEqual(app._parent_prefix("foo/"), "")
        self.assertEqual(app._parent_prefix(""), "")

    def test_location_title(self) -> None:
        app = S3Explorer(service=_NoopService())
        app.current_bucket = "bucket-a"
        app.current_prefix = "a/b/"
        self.assertEqual(app.location_title(), "s3://bucket-a/a/b/")

    def test_download_destination(self) -> None:
        app = S3Explorer(service=_NoopService(), download_dir=Path("/data/in"))
        node = NodeInfo(key="a/b/report.csv", display_string="report.csv", is_dir=False)
        self.assertEqual(app.download_destination(node), "/data/in/report.csv")

    def test_default_download_dir(self) -> None:
        app = S3Explorer(service=_NoopService())
        self.assertEqual(app.download_dir, DEFAULT_DOWNLOAD_DIR)
        self.assertFalse(app.download_in_progress())

    def test_resolve_download_dir(self) -> None:
        service = MagicMock()
        service.load_download_dir.return_value = Path("/from/config")
        self.assertEqual(_resolve_download_dir("/from/cli", service), Path("/from/cli"))
        self.assertEqual(_resolve_download_dir(None, service), Path("/from/config"))
        service.load_download_dir.return_value = None
        self.assertEqual(_resolve_download_dir(None, service), DEFAULT_DOWNLOAD_DIR)

    def test_configure_logging_to_file(self) -> None:
        with patch("s3explorer.app.logging.basicConfig") as basic_config:
            _configure_logging("/tmp/s3explorer.log")
        basic_config.assert_called_once()
        self.assertEqual(basic_config.call_args.kwargs["filename"], "/tmp/s3explorer.log")
        self.assertEqual(basic_config.call_args.kwargs["level"], logging.DEBUG)

    def test_configure_logging_silences_terminal(self) -> None:
        logger = logging.getLogger("s3explorer")
        before = list(logger.handlers)
        try:
            with patch("s3explorer.app.logging.basicConfig") as basic_config:
                _configure_logging(None)
            basic_config.assert_not_called()
            self.assertTrue(
                any(isinstance(handler, logging.NullHandler) for handler in logger.handlers)
            )
        finally:
            logger.handlers = before


if __name__ == "__main__":
    unittest.main()
