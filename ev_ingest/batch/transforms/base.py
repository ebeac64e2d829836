"""
Common flow of the zone and station transforms: read the source file,
parse each row into a record or an InvalidRow, write the records.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from pydantic import BaseModel

from ev_ingest.batch.readers import CSVReader
from ev_ingest.batch.writers import BatchWriter
from ev_ingest.core.config import PipelineConfig
from ev_ingest.core.errors import DecodeError, SourceUnavailable
from ev_ingest.core.models import BatchWriteOutcome, InvalidRow, TransformResult
from ev_ingest.core.models.outcomes import Branch
from ev_ingest.observability import metrics
from ev_ingest.observability.logger import get_logger

logger = get_logger(__name__)


def parse_field(row: dict[str, str], field: str, parser: Callable[[Any], Any]) -> Any:
    """
    Parse one named cell.

    Raises:
        ValueError: Naming the field when the cell is missing or unparsable
    """
    value = row.get(field)
    try:
        return parser(value)
    except (TypeError, ValueError):
        raise ValueError(f"invalid {field}: {value!r}") from None


def write_stats(total_key: str, total: int, skipped: int, outcome: BatchWriteOutcome) -> dict[str, int]:
    return {
        total_key: total,
        "skippedRows": skipped,
        "successfulWrites": outcome.success_count,
        "failedWrites": outcome.failed_count,
        "unprocessedItems": len(outcome.unprocessed_items),
    }


def write_succeeded(total: int, outcome: BatchWriteOutcome) -> bool:
    """A write succeeds when there was nothing to write or at least one item landed."""
    return total == 0 or outcome.success_count > 0


class BaseTransform(ABC):
    """
    Read -> parse -> write for a single-file branch.

    ``run()`` never raises for read or decode failures; they come back as a
    failed TransformResult.
    """

    branch: Branch
    label: str
    total_key: str

    def __init__(self, reader: CSVReader, writer: BatchWriter, config: PipelineConfig):
        """
        Initialize transform.

        Args:
            reader: CSV reader bound to the batch's blob store
            writer: Shared batch writer
            config: Pipeline configuration
        """
        self.reader = reader
        self.writer = writer
        self.config = config

    @property
    @abstractmethod
    def source_key(self) -> str:
        """Blob key of the source file."""

    @property
    @abstractmethod
    def destination(self) -> str:
        """Destination table."""

    @abstractmethod
    def parse_row(self, row: dict[str, str], row_number: int) -> BaseModel | InvalidRow:
        """Turn one raw row into a record or an InvalidRow."""

    def extract(self) -> tuple[list[BaseModel], list[InvalidRow]]:
        """Read the source file and split its rows into records and rejects."""
        records: list[BaseModel] = []
        rejected: list[InvalidRow] = []

        for index, row in enumerate(self.reader.read(self.source_key)):
            parsed = self.parse_row(row, index + 2)
            if isinstance(parsed, InvalidRow):
                logger.warning(
                    f"Skipping invalid {self.branch} row",
                    extra={"row_number": parsed.row_number, "reason": parsed.reason},
                )
                rejected.append(parsed)
            else:
                records.append(parsed)

        return records, rejected

    def run(self) -> TransformResult:
        started = time.perf_counter()
        logger.info(f"Reading {self.source_key}", extra={"branch": self.branch})

        try:
            records, rejected = self.extract()
        except (SourceUnavailable, DecodeError) as e:
            logger.error(
                f"Error transforming {self.label}",
                extra={"branch": self.branch, "error_message": str(e)},
            )
            result = TransformResult(
                branch=self.branch,
                success=False,
                message=f"Failed to transform {self.label}",
                stats=write_stats(self.total_key, 0, 0, BatchWriteOutcome()),
                error=str(e),
            )
            metrics.record_branch(self.branch, False, 0, time.perf_counter() - started)
            return result

        logger.info(f"Parsed {len(records)} {self.branch} records ({len(rejected)} skipped)")
        outcome = self.writer.write(records, self.destination)
        success = write_succeeded(len(records), outcome)

        if not success:
            message = f"Failed to write {self.label}"
        elif outcome.failed_count:
            message = f"{self.label.capitalize()} transformed with partial success"
        else:
            message = f"{self.label.capitalize()} transformed successfully"

        result = TransformResult(
            branch=self.branch,
            success=success,
            message=message,
            stats=write_stats(self.total_key, len(records), len(rejected), outcome),
            unprocessed_items=outcome.unprocessed_items,
            error=None if success else "no records were written",
        )
        metrics.record_branch(self.branch, success, len(rejected), time.perf_counter() - started)
        return result
