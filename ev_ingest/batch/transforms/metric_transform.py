"""
Metric transform: charge_1hour/<metric>.csv wide tables -> ZoneMetricRecord items.

Each metric file has a ``time`` column followed by one column per TAZID
and one row per hour. Files are read concurrently into partial maps,
merged in the configured metric order, then written in one pass.
"""

import contextvars
import time
from concurrent.futures import ThreadPoolExecutor
from itertools import islice
from typing import Sequence

from ev_ingest.batch.readers import CSVReader
from ev_ingest.batch.writers import BatchWriter
from ev_ingest.core.config import PipelineConfig
from ev_ingest.core.errors import DecodeError, SourceUnavailable
from ev_ingest.core.models import MetricResult, TransformResult, zone_id_for
from ev_ingest.core.validators import parse_float, parse_int
from ev_ingest.observability import metrics
from ev_ingest.observability.logger import get_logger

from .base import write_succeeded
from .metric_merge import PartialMap, merge_partials

logger = get_logger(__name__)


def read_metric_file(reader: CSVReader, key: str, metric: str, max_rows: int) -> tuple[PartialMap, int]:
    """
    Read one wide metric file into a partial map.

    Only the first ``max_rows`` data rows are read. Headers that are not a
    TAZID are skipped with a warning; empty or non-numeric cells produce
    no value.

    Args:
        reader: CSV reader
        key: Blob key of the metric file
        metric: Metric name (for logging)
        max_rows: Data row cap

    Returns:
        ((tazid, timestamp) -> value, data rows read)

    Raises:
        SourceUnavailable: If the file cannot be fetched
        DecodeError: If the file is not valid CSV or its first column is not ``time``
    """
    rows = reader.read(key, header=False)
    try:
        header = next(rows, None)
        if header is None:
            logger.warning("Metric file is empty", extra={"metric": metric, "key": key})
            return {}, 0

        headers = [column.strip().lower() for column in header]
        if headers[:1] != ["time"]:
            raise DecodeError(key, f'first column must be "time", got {header[:1]}')

        columns: list[tuple[int, int]] = []
        for index, column in enumerate(headers[1:], start=1):
            try:
                columns.append((index, parse_int(column)))
            except ValueError:
                logger.warning(
                    f"Could not parse TAZID from header: {column}",
                    extra={"metric": metric},
                )

        partial: PartialMap = {}
        rows_read = 0
        for fields in islice(rows, max_rows):
            rows_read += 1
            timestamp = fields[0]
            if not timestamp:
                logger.warning("Skipping row without timestamp", extra={"metric": metric, "row_number": rows_read + 1})
                continue

            for index, tazid in columns:
                if index >= len(fields) or not fields[index]:
                    continue
                try:
                    value = parse_float(fields[index])
                except ValueError:
                    continue
                partial[(tazid, timestamp)] = value
    finally:
        rows.close()

    logger.info(
        f"Parsed {len(partial)} zone-level data points for metric {metric} (processed {rows_read} rows)",
        extra={"metric": metric},
    )
    return partial, rows_read


class MetricTransform:
    """
    Per-metric fan-out plus merge.

    A metric whose file cannot be read becomes a failed sub-result; the
    others are still merged and written. The branch succeeds only when
    every sub-result succeeded.
    """

    branch = "metric"

    def __init__(
        self,
        reader: CSVReader,
        writer: BatchWriter,
        config: PipelineConfig,
        metric_names: Sequence[str] | None = None,
    ):
        """
        Initialize metric transform.

        Args:
            reader: CSV reader bound to the batch's blob store
            writer: Shared batch writer
            config: Pipeline configuration
            metric_names: Metrics to transform; defaults to ``config.metrics``.
                The merge always follows this order.
        """
        self.reader = reader
        self.writer = writer
        self.config = config
        self.metric_names = list(metric_names) if metric_names else list(config.metrics)

    @property
    def destination(self) -> str:
        return self.config.tables.metric

    def read_metric(self, metric: str) -> tuple[PartialMap, int]:
        return read_metric_file(
            self.reader,
            self.config.metric_key(metric),
            metric,
            self.config.max_rows_per_file,
        )

    def run(self) -> TransformResult:
        started = time.perf_counter()
        partials: dict[str, PartialMap] = {}
        rows_read: dict[str, int] = {}
        errors: dict[str, str] = {}

        workers = max(1, min(self.config.metric_concurrency, len(self.metric_names)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="metric-read") as pool:
            futures = {
                metric: pool.submit(contextvars.copy_context().run, self.read_metric, metric)
                for metric in self.metric_names
            }

        for metric in self.metric_names:
            try:
                partials[metric], rows_read[metric] = futures[metric].result()
            except (SourceUnavailable, DecodeError) as e:
                logger.error(
                    f"Error transforming metric {metric}",
                    extra={"metric": metric, "error_message": str(e)},
                )
                errors[metric] = str(e)

        records = merge_partials(self.metric_names, partials)
        logger.info(
            f"Merged {sum(len(p) for p in partials.values())} data points into {len(records)} zone-level records"
        )
        outcome = self.writer.write(records, self.destination)

        failed_keys = {(item.get("ZoneId"), item.get("Timestamp")) for item in outcome.unprocessed_items}
        metric_results = []
        for metric in self.metric_names:
            if metric in errors:
                metric_results.append(MetricResult(metric=metric, success=False, error=errors[metric]))
                continue
            partial = partials[metric]
            written = sum(
                1 for tazid, timestamp in partial if (zone_id_for(tazid), timestamp) not in failed_keys
            )
            success = not partial or written > 0
            metric_results.append(
                MetricResult(
                    metric=metric,
                    success=success,
                    data_points=len(partial),
                    rows_read=rows_read[metric],
                    error=None if success else "no data points were written",
                )
            )

        success = bool(metric_results) and all(r.success for r in metric_results)
        success = success and write_succeeded(len(records), outcome)
        failed = [r.metric for r in metric_results if not r.success]

        if success and outcome.failed_count:
            message = "Metrics transformed with partial success"
        elif success:
            message = "Metrics transformed successfully"
        else:
            message = f"Failed to transform metrics: {', '.join(failed) or 'none written'}"

        stats = {
            "totalDataPoints": len(records),
            "successfulWrites": outcome.success_count,
            "failedWrites": outcome.failed_count,
            "unprocessedItems": len(outcome.unprocessed_items),
            "metricsSucceeded": len(metric_results) - len(failed),
            "metricsFailed": len(failed),
        }

        result = TransformResult(
            branch=self.branch,
            success=success,
            message=message,
            stats=stats,
            unprocessed_items=outcome.unprocessed_items,
            error="; ".join(f"{m}: {errors[m]}" for m in errors) or None,
            metric_results=metric_results,
        )
        metrics.record_branch(self.branch, success, 0, time.perf_counter() - started)
        return result
