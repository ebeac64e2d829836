"""
Transforms from raw CSV rows to keyed records.
"""

from .base import BaseTransform
from .metric_merge import MetricAccumulator, attribute_name, finalize_metrics, merge_partials
from .metric_transform import MetricTransform, read_metric_file
from .station_transform import StationTransform, parse_station_row
from .zone_transform import ZoneTransform, parse_zone_row

__all__ = [
    "BaseTransform",
    "ZoneTransform",
    "StationTransform",
    "MetricTransform",
    "MetricAccumulator",
    "parse_zone_row",
    "parse_station_row",
    "read_metric_file",
    "merge_partials",
    "finalize_metrics",
    "attribute_name",
]
