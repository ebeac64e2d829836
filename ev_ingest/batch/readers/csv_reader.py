"""
CSV row stream over the blob store.

Rows are produced lazily so large metric files are never buffered whole.
"""

import csv
import io
from typing import Iterator

from ev_ingest.core.errors import DecodeError
from ev_ingest.store.blob_store import BlobStore


def clean_fields(fields: list[str]) -> list[str]:
    """Trim every field and drop empty trailing fields."""
    cleaned = [field.strip() for field in fields]
    while cleaned and cleaned[-1] == "":
        cleaned.pop()
    return cleaned


class CSVReader:
    """
    Reads CSV blobs as forward-only row iterators.

    In header mode the first line is consumed as the header and each row is
    a ``dict`` of header -> value in column order; fields missing at the end
    of a line are absent from the dict. In headerless mode rows are plain
    lists. Completely empty lines are skipped.
    """

    def __init__(self, blob_store: BlobStore):
        """
        Initialize CSV reader.

        Args:
            blob_store: Store the blobs are read from
        """
        self.blob_store = blob_store

    def read(self, key: str, header: bool = True, delimiter: str = ",") -> Iterator[dict[str, str] | list[str]]:
        """
        Stream rows of a CSV blob.

        The blob is fetched when iteration starts.

        Args:
            key: Blob key
            header: Whether the first line is a header row
            delimiter: Field delimiter

        Yields:
            Header -> value dicts (header mode) or field lists

        Raises:
            SourceUnavailable: If the blob cannot be fetched
            DecodeError: If the blob is not UTF-8 or not valid CSV
        """
        raw = self.blob_store.open(key)
        text_stream = io.TextIOWrapper(raw, encoding="utf-8-sig", newline="")
        try:
            reader = csv.reader(text_stream, delimiter=delimiter, strict=True)
            columns: list[str] | None = None
            for fields in reader:
                fields = clean_fields(fields)
                if not fields:
                    continue
                if not header:
                    yield fields
                elif columns is None:
                    columns = fields
                else:
                    yield dict(zip(columns, fields))
        except UnicodeDecodeError as exc:
            raise DecodeError(key, "CSV must be UTF-8 encoded") from exc
        except csv.Error as exc:
            raise DecodeError(key, f"Invalid CSV format: {exc}") from exc
        finally:
            text_stream.close()

    def read_header(self, key: str) -> list[str]:
        """Return the header row of a blob, or an empty list for an empty blob."""
        rows = self.read(key, header=False)
        try:
            return next(rows, [])
        finally:
            rows.close()

    def read_all(self, key: str, header: bool = True) -> tuple[list[str], list[dict[str, str] | list[str]]]:
        """
        Read a small blob fully.

        Returns:
            (header, rows); the header is empty in headerless mode
        """
        if not header:
            return [], list(self.read(key, header=False))

        columns: list[str] = []
        rows: list[dict[str, str] | list[str]] = []
        for index, fields in enumerate(self.read(key, header=False)):
            if index == 0:
                columns = fields
            else:
                rows.append(dict(zip(columns, fields)))
        return columns, rows
