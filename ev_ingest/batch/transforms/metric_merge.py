"""
Wide -> narrow merge of the metric files.

Each metric file yields a partial map ``(tazid, timestamp) -> value``.
Partial maps are folded, in a fixed metric order, into one accumulator
slot per (zone, timestamp); a later metric adds or overwrites its own
attribute and never removes attributes set by earlier metrics.
"""

import re
from typing import Iterable, Mapping

from ev_ingest.core.models import ZoneMetricRecord, zone_id_for

PRICE_COMPONENTS = ("e_price", "s_price")
TOTAL_PRICE = "total_price"

PartialMap = dict[tuple[int, str], float]


def attribute_name(metric: str) -> str:
    """Identifier-safe attribute name (``volume-11kw`` -> ``volume_11kw``)."""
    return re.sub(r"\W", "_", metric)


def finalize_metrics(values: Mapping[str, float]) -> dict[str, float]:
    """
    Final attribute set of one slot.

    When both price components are present they are replaced by their sum
    ``total_price``; a lone component is kept as is. Names are made
    identifier-safe.
    """
    finalized = dict(values)
    if all(name in finalized for name in PRICE_COMPONENTS):
        finalized[TOTAL_PRICE] = sum(finalized.pop(name) for name in PRICE_COMPONENTS)
    return {attribute_name(name): value for name, value in finalized.items()}


class MetricAccumulator:
    """
    Streaming fold of partial metric maps.

    Slot identity is exactly the (zone, timestamp) pair; slots keep first
    insertion order.
    """

    def __init__(self) -> None:
        self._slots: dict[tuple[str, str], tuple[int, dict[str, float]]] = {}

    def add(self, metric: str, tazid: int, timestamp: str, value: float) -> None:
        key = (zone_id_for(tazid), timestamp)
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = (tazid, {})
        slot[1][metric] = value

    def fold(self, metric: str, partial: Mapping[tuple[int, str], float]) -> None:
        for (tazid, timestamp), value in partial.items():
            self.add(metric, tazid, timestamp, value)

    def __len__(self) -> int:
        return len(self._slots)

    def keys(self) -> list[tuple[str, str]]:
        return list(self._slots)

    def records(self) -> list[ZoneMetricRecord]:
        return [
            ZoneMetricRecord(
                zone_id=zone_id,
                timestamp=timestamp,
                tazid=tazid,
                metrics=finalize_metrics(values),
            )
            for (zone_id, timestamp), (tazid, values) in self._slots.items()
        ]


def merge_partials(order: Iterable[str], partials: Mapping[str, PartialMap]) -> list[ZoneMetricRecord]:
    """
    Fold partial maps in ``order`` and finalize.

    Metrics in ``order`` without a partial map are skipped.

    Args:
        order: Metric names in merge order
        partials: metric -> partial map

    Returns:
        One ZoneMetricRecord per (zone, timestamp) observed
    """
    accumulator = MetricAccumulator()
    for metric in order:
        partial = partials.get(metric)
        if partial is not None:
            accumulator.fold(metric, partial)
    return accumulator.records()
