"""Blob store adapters (local directory + S3) behind one read-only protocol."""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from ev_ingest.core.errors import SourceUnavailable


class BlobStore(Protocol):
    def open(self, key: str) -> BinaryIO:
        """Open a blob for streaming reads. Raises SourceUnavailable."""
        ...

    def read_bytes(self, key: str) -> bytes:
        ...

    def list_keys(self, prefix: str) -> list[str]:
        ...


class LocalBlobStore:
    """Blob store backed by a directory; keys are paths relative to ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _full_path(self, key: str) -> Path:
        return self.root / key.lstrip("/")

    def open(self, key: str) -> BinaryIO:
        try:
            return self._full_path(key).open("rb")
        except OSError as exc:
            raise SourceUnavailable(key, str(exc)) from exc

    def read_bytes(self, key: str) -> bytes:
        try:
            return self._full_path(key).read_bytes()
        except OSError as exc:
            raise SourceUnavailable(key, str(exc)) from exc

    def list_keys(self, prefix: str) -> list[str]:
        base = self._full_path(prefix)
        search_root = base if base.is_dir() else base.parent
        if not search_root.exists():
            return []
        keys = []
        for path in sorted(search_root.rglob("*")):
            if not path.is_file():
                continue
            key = path.relative_to(self.root).as_posix()
            if key.startswith(prefix.lstrip("/")):
                keys.append(key)
        return keys


class S3BlobStore:
    """
    Blob store backed by one S3 bucket.

    The client is injected (or built once per store) rather than shared
    at module level.
    """

    def __init__(
        self,
        bucket: str,
        client: Any | None = None,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        if client is None:
            import boto3

            client = boto3.client("s3", region_name=region, endpoint_url=endpoint_url)
        self.bucket = bucket
        self._client = client

    def open(self, key: str) -> BinaryIO:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise SourceUnavailable(f"s3://{self.bucket}/{key}", _describe(exc)) from exc
        return response["Body"]

    def read_bytes(self, key: str) -> bytes:
        body = self.open(key)
        try:
            return body.read()
        except (ClientError, BotoCoreError) as exc:
            raise SourceUnavailable(f"s3://{self.bucket}/{key}", _describe(exc)) from exc
        finally:
            body.close()

    def list_keys(self, prefix: str) -> list[str]:
        keys: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except (ClientError, BotoCoreError) as exc:
            raise SourceUnavailable(f"s3://{self.bucket}/{prefix}", _describe(exc)) from exc
        return keys


def _describe(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        return f"{error.get('Code', 'ClientError')}: {error.get('Message', str(exc))}"
    return str(exc)
