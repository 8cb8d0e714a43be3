import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from s3explorer.app import (
    EXIT_FAILED_BUCKET_LISTING,
    EXIT_FAILED_NO_TERMINAL,
    EXIT_OK,
    main,
)
from s3explorer.s3 import BucketInfo, ListingUnavailable


class TestMain(unittest.TestCase):
    def setUp(self) -> None:
        patcher = patch("s3explorer.app._configure_logging")
        self.configure_logging = patcher.start()
        self.addCleanup(patcher.stop)

    def test_exits_without_terminal(self) -> None:
        with patch("s3explorer.app._has_terminal", return_value=False):
            with patch("s3explorer.app.S3Service") as service_cls:
                with patch("sys.stderr"):
                    code = main([])

        self.assertEqual(code, EXIT_FAILED_NO_TERMINAL)
        service_cls.assert_not_called()

    def test_exits_when_bucket_listing_fails(self) -> None:
        with patch("s3explorer.app._has_terminal", return_value=True):
            with patch("s3explorer.app.S3Service") as service_cls:
                service_cls.return_value.list_buckets = AsyncMock(
                    side_effect=ListingUnavailable("no credentials")
                )
                with patch("s3explorer.app.S3Explorer") as app_cls:
                    with patch("sys.stderr"):
                        code = main([])

        self.assertEqual(code, EXIT_FAILED_BUCKET_LISTING)
        app_cls.assert_not_called()

    def test_runs_browser_with_initial_buckets(self) -> None:
        buckets = [BucketInfo(name="alpha", display_string="alpha")]
        with patch("s3explorer.app._has_terminal", return_value=True):
            with patch("s3explorer.app.S3Service") as service_cls:
                service = service_cls.return_value
                service.list_buckets = AsyncMock(return_value=buckets)
                with patch("s3explorer.app.S3Explorer") as app_cls:
                    code = main(
                        [
                            "--profile",
                            "dev",
                            "--region",
                            "us-west-2",
                            "--download-dir",
                            "/data/in",
                        ]
                    )

        self.assertEqual(code, EXIT_OK)
        service_cls.assert_called_once_with(profile="dev", region="us-west-2")
        app_cls.assert_called_once_with(
            service=service,
            buckets=buckets,
            download_dir=Path("/data/in"),
        )
        app_cls.return_value.run.assert_called_once_with()

    def test_log_file_option(self) -> None:
        with patch("s3explorer.app._has_terminal", return_value=False):
            with patch("sys.stderr"):
                main(["--log-file", "/tmp/s3explorer.log"])

        self.configure_logging.assert_called_once_with("/tmp/s3explorer.log")

    def test_log_file_from_environment(self) -> None:
        with patch.dict("os.environ", {"S3EXPLORER_LOG": "/tmp/env.log"}):
            with patch("s3explorer.app._has_terminal", return_value=False):
                with patch("sys.stderr"):
                    main([])

        self.configure_logging.assert_called_once_with("/tmp/env.log")


if __name__ == "__main__":
    unittest.main()
