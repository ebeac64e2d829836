"""
Schema and referential validation of ingestion batches.
"""

from .csv_validator import CsvValidator

__all__ = [
    "CsvValidator",
]
