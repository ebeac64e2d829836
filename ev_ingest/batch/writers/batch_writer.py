"""
Chunked bulk writer for the keyed store.

Splits records into bulk puts of at most 25 items and retries throttled
and failed puts with exponential backoff. Write failures never raise;
they end up in the returned BatchWriteOutcome.
"""

import time
from typing import Any, Callable, Iterable

from ev_ingest.core.errors import ThrottledWrite, TransportError
from ev_ingest.core.models import BatchWriteOutcome
from ev_ingest.observability import metrics
from ev_ingest.observability.logger import get_logger
from ev_ingest.store.keyed_store import MAX_BATCH_ITEMS, KeyedStore

logger = get_logger(__name__)


def to_item(record: Any) -> dict[str, Any]:
    """Render a keyed record (or a plain mapping) as a store item."""
    if hasattr(record, "to_item"):
        return record.to_item()
    return dict(record)


def latest_per_key(records: Iterable[Any]) -> tuple[list[dict[str, Any]], int]:
    """
    Render records as items, keeping only the last record for each key.

    Plain mappings carry no key and are always kept. A kept item stays at
    the position of the first record with its key.

    Returns:
        (items, number of records dropped)
    """
    items: dict[tuple, dict[str, Any]] = {}
    superseded = 0
    for position, record in enumerate(records):
        if hasattr(record, "key"):
            key = ("key", *sorted(record.key().items()))
            superseded += key in items
        else:
            key = ("item", position)
        items[key] = to_item(record)
    return list(items.values()), superseded


class BatchWriter:
    """
    Writes records to one destination in sequential chunks.

    Each chunk gets its own retry budget of ``max_retries``, shared between
    unprocessed-item retries (only the returned subset is re-sent) and
    transport-error retries (the whole pending set is re-sent). The delay
    before retry ``n`` (0-based) is ``base_delay * 2**n``.
    """

    def __init__(
        self,
        keyed_store: KeyedStore,
        batch_size: int = MAX_BATCH_ITEMS,
        max_retries: int = 3,
        base_delay: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize batch writer.

        Args:
            keyed_store: Target keyed store
            batch_size: Items per bulk put (capped at the store limit)
            max_retries: Retries per chunk after the first attempt
            base_delay: Delay before the first retry, in seconds
            sleep: Sleep function (injected in tests)
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.keyed_store = keyed_store
        self.batch_size = min(batch_size, MAX_BATCH_ITEMS)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.sleep = sleep

    def write(self, records: Iterable[Any], destination: str) -> BatchWriteOutcome:
        """
        Write all records, chunk by chunk.

        Records sharing a key collapse to the last one, matching the
        store's overwrite-by-key result; a bulk put may not repeat a key.
        A failing chunk never stops the remaining chunks.

        Args:
            records: Keyed records or plain item dicts
            destination: Destination table

        Returns:
            Accumulated BatchWriteOutcome
        """
        items, superseded = latest_per_key(records)
        if superseded:
            logger.warning(
                f"Dropped {superseded} records superseded by a later record with the same key",
                extra={"destination": destination},
            )
        outcome = BatchWriteOutcome()
        if not items:
            return outcome

        chunk_count = (len(items) + self.batch_size - 1) // self.batch_size
        logger.info(
            f"Writing {len(items)} items in {chunk_count} batches to {destination}",
            extra={"destination": destination},
        )

        started = time.perf_counter()
        for index in range(0, len(items), self.batch_size):
            chunk = items[index:index + self.batch_size]
            outcome = outcome + self._write_chunk(chunk, destination)

        duration = time.perf_counter() - started
        metrics.record_write(destination, outcome.success_count, outcome.failed_count, duration)
        logger.info(
            f"Write complete: {outcome.success_count} success, {outcome.failed_count} failed",
            extra={
                "destination": destination,
                "unprocessed": len(outcome.unprocessed_items),
                "duration_seconds": round(duration, 3),
            },
        )
        return outcome

    def _put(self, destination: str, items: list[dict[str, Any]]) -> None:
        unprocessed = self.keyed_store.batch_put(destination, items)
        if unprocessed:
            raise ThrottledWrite(unprocessed)

    def _write_chunk(self, chunk: list[dict[str, Any]], destination: str) -> BatchWriteOutcome:
        pending = list(chunk)
        attempt = 0

        while True:
            try:
                self._put(destination, pending)
                pending = []
                break
            except ThrottledWrite as e:
                pending = list(e.unprocessed)
                reason = "unprocessed"
                logger.warning(
                    f"Batch had {len(pending)} unprocessed items",
                    extra={"destination": destination, "attempt": attempt + 1},
                )
            except TransportError as e:
                reason = "transport"
                logger.warning(
                    f"Error writing batch: {e}",
                    extra={"destination": destination, "attempt": attempt + 1},
                )

            if attempt >= self.max_retries:
                logger.error(
                    f"Max retries reached. {len(pending)} items remain unprocessed",
                    extra={"destination": destination},
                )
                break

            delay = self.base_delay * 2 ** attempt
            metrics.record_retry(destination, reason)
            logger.info(
                f"Retrying {len(pending)} items after {delay:.3f}s",
                extra={"destination": destination, "attempt": attempt + 1, "reason": reason},
            )
            self.sleep(delay)
            attempt += 1

        return BatchWriteOutcome(
            success_count=len(chunk) - len(pending),
            failed_count=len(pending),
            unprocessed_items=pending,
        )
