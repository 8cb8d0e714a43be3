from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

LOGGER = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_DIR = Path.home() / "Downloads"


class ListingUnavailable(Exception):
    """Buckets or objects could not be listed."""


class DownloadFailed(ListingUnavailable):
    """An object could not be downloaded."""


class DownloadCancelled(Exception):
    pass


@dataclass(frozen=True)
class BucketInfo:
    name: str
    display_string: str
    created: Optional[datetime] = None


@dataclass(frozen=True)
class NodeInfo:
    key: str
    display_string: str
    is_dir: bool
    size: Optional[int] = None
    last_modified: Optional[datetime] = None


def format_time(value: Optional[datetime]) -> str:
    if not value:
        return ""
    return value.strftime("%Y-%m-%d %H:%M")


def display_segment(full_prefix: str, parent_prefix: str) -> str:
    name = full_prefix[len(parent_prefix) :] if parent_prefix else full_prefix
    return name.strip("/")


def bucket_display_string(name: str, created: Optional[datetime]) -> str:
    stamp = format_time(created)
    if not stamp:
        return name
    return f"{name} ({stamp})"


class S3Service:
    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        config_path: Optional[Path] = None,
    ) -> None:
        self.profile = self._normalize_profile(profile)
        self._region = region
        self._s3_client = None
        self._config_path = config_path or self._default_config_path()

    def _normalize_profile(self, profile: Optional[str]) -> Optional[str]:
        if profile is None:
            return None
        profile = profile.strip()
        if not profile or profile == "default":
            return None
        return profile

    def _config_base_dir(self) -> Path:
        config_home = os.environ.get("XDG_CONFIG_HOME")
        if config_home:
            base = Path(config_home).expanduser()
        else:
            base = Path.home() / ".config"
        return base / "s3explorer"

    def _default_config_path(self) -> Path:
        return self._config_base_dir() / "config.json"

    def _client(self):
        if self._s3_client is not None:
            return self._s3_client
        if self.profile is None:
            session = boto3.session.Session()
        else:
            session = boto3.session.Session(profile_name=self.profile)
        if self._region:
            client = session.client("s3", region_name=self._region)
        else:
            client = session.client("s3")
        self._s3_client = client
        return client

    def _read_app_config(self) -> dict[str, object]:
        try:
            payload = json.loads(self._config_path.read_text())
        except (OSError, ValueError):
            return {}
        if not isinstance(payload, dict):
            return {}
        return payload

    def load_download_dir(self) -> Optional[Path]:
        value = self._read_app_config().get("download_dir")
        if not isinstance(value, str):
            return None
        normalized = value.strip()
        if not normalized:
            return None
        return Path(normalized).expanduser()

    async def list_buckets(self) -> list[BucketInfo]:
        return await asyncio.to_thread(self._list_buckets)

    def _list_buckets(self) -> list[BucketInfo]:
        try:
            response = self._client().list_buckets()
        except (BotoCoreError, ClientError) as exc:
            LOGGER.warning("Bucket listing failed: %s", exc)
            raise ListingUnavailable(f"Unable to list buckets: {exc}") from exc
        buckets: list[BucketInfo] = []
        for entry in response.get("Buckets", []):
            name = entry.get("Name")
            if not name:
                continue
            created = entry.get("CreationDate")
            buckets.append(
                BucketInfo(
                    name=name,
                    display_string=bucket_display_string(name, created),
                    created=created,
                )
            )
        return sorted(buckets, key=lambda b: b.name.lower())

    async def list_nodes(self, bucket: str, prefix: str) -> list[NodeInfo]:
        return await asyncio.to_thread(self._list_nodes, bucket, prefix)

    def _list_nodes(self, bucket: str, prefix: str) -> list[NodeInfo]:
        directories: list[NodeInfo] = []
        files: list[NodeInfo] = []
        continuation: Optional[str] = None
        try:
            client = self._client()
            while True:
                kwargs = {
                    "Bucket": bucket,
                    "Delimiter": "/",
                    "Prefix": prefix,
                    "MaxKeys": 1000,
                }
                if continuation:
                    kwargs["ContinuationToken"] = continuation
                response = client.list_objects_v2(**kwargs)
                for entry in response.get("CommonPrefixes", []):
                    value = entry.get("Prefix")
                    if not value:
                        continue
                    directories.append(
                        NodeInfo(
                            key=value,
                            display_string=f"{display_segment(value, prefix)}/",
                            is_dir=True,
                        )
                    )
                for entry in response.get("Contents", []):
                    key = entry.get("Key")
                    if not key:
                        continue
                    if key.endswith("/"):
                        continue
                    if prefix and key == prefix:
                        continue
                    files.append(
                        NodeInfo(
                            key=key,
                            display_string=display_segment(key, prefix),
                            is_dir=False,
                            size=int(entry.get("Size", 0)),
                            last_modified=entry.get("LastModified"),
                        )
                    )
                if response.get("IsTruncated"):
                    continuation = response.get("NextContinuationToken")
                else:
                    break
        except (BotoCoreError, ClientError) as exc:
            LOGGER.warning("Listing s3://%s/%s failed: %s", bucket, prefix, exc)
            raise ListingUnavailable(
                f"Unable to list s3://{bucket}/{prefix}: {exc}"
            ) from exc
        directories.sort(key=lambda node: node.key.lower())
        files.sort(key=lambda node: node.key.lower())
        return directories + files

    async def download_object(self, bucket: str, key: str, destination: str) -> str:
        cancelled = threading.Event()
        try:
            return await asyncio.to_thread(
                self._download_object, bucket, key, destination, cancelled
            )
        except asyncio.CancelledError:
            cancelled.set()
            LOGGER.info("Download of s3://%s/%s cancelled", bucket, key)
            raise

    def _download_object(
        self,
        bucket: str,
        key: str,
        destination: str,
        cancelled: Optional[threading.Event] = None,
    ) -> str:
        def progress(_transferred: int) -> None:
            # Raising from the transfer callback aborts the transfer.
            if cancelled is not None and cancelled.is_set():
                raise DownloadCancelled(key)

        dest_path = str(destination)
        try:
            parent = os.path.dirname(dest_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            self._client().download_file(bucket, key, dest_path, Callback=progress)
        except (BotoCoreError, ClientError, OSError) as exc:
            LOGGER.warning("Download of s3://%s/%s failed: %s", bucket, key, exc)
            raise DownloadFailed(f"Unable to download s3://{bucket}/{key}: {exc}") from exc
        return dest_path
