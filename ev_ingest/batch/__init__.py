"""
Batch ingestion: read -> validate -> transform -> write.
"""

from .readers import CSVReader
from .transforms import MetricTransform, StationTransform, ZoneTransform
from .validation import CsvValidator
from .workflow import IngestionWorkflow, evaluate
from .writers import BatchWriter

__all__ = [
    "CSVReader",
    "CsvValidator",
    "ZoneTransform",
    "StationTransform",
    "MetricTransform",
    "BatchWriter",
    "IngestionWorkflow",
    "evaluate",
]
