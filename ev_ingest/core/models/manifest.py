"""
Manifest model: one ingestion batch, created by the upload step and
consumed once per workflow execution.
"""

import json
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ev_ingest.core.errors import DecodeError

if TYPE_CHECKING:
    from ev_ingest.store.blob_store import BlobStore


class Manifest(BaseModel):
    """
    File list plus metadata describing one ingestion batch.

    Attributes:
        bucket: Blob store bucket holding the files
        files: Ordered file keys
        manifest_key: Key of the manifest document, when read from the store
        counts: Upload counters (totalFiles, totalSizeBytes)
        created_at: Upload timestamp
        metadata: Per-file upload metadata (key, etag, size)
        metrics: Metric names to transform; empty means the configured list
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    bucket: str = Field(..., min_length=1)
    files: tuple[str, ...]
    manifest_key: str | None = Field(None, alias="manifestKey")
    counts: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = Field(None, alias="createdAt")
    metadata: tuple[dict[str, Any], ...] = ()
    metrics: tuple[str, ...] = ()

    @field_validator("files")
    @classmethod
    def check_files(cls, v):
        if not v:
            raise ValueError("manifest must list at least one file")
        return v

    @classmethod
    def from_trigger(cls, event: dict[str, Any]) -> "Manifest":
        """
        Build a manifest from a workflow trigger payload.

        Args:
            event: ``{bucket, manifestKey, files, counts, metrics, ...}``

        Returns:
            Manifest

        Raises:
            pydantic.ValidationError: If bucket or files are missing
        """
        return cls.model_validate(event)

    @classmethod
    def from_blob(cls, store: "BlobStore", key: str, bucket: str) -> "Manifest":
        """
        Read a ``_manifest.json`` document from the blob store.

        Raises:
            SourceUnavailable: If the manifest cannot be fetched
            DecodeError: If the document is not valid JSON
        """
        raw = store.read_bytes(key)
        try:
            document = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(key, f"invalid manifest document: {e}") from e

        return cls(
            bucket=bucket,
            files=tuple(document.get("files") or ()),
            manifest_key=key,
            counts=document.get("counts") or {},
            created_at=document.get("createdAt"),
            metadata=tuple(document.get("metadata") or ()),
        )

    def to_trigger(self, metrics: list[str] | None = None) -> dict[str, Any]:
        """Render the workflow trigger payload."""
        return {
            "bucket": self.bucket,
            "manifestKey": self.manifest_key,
            "files": list(self.files),
            "counts": dict(self.counts),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "metrics": list(metrics if metrics is not None else self.metrics),
        }
