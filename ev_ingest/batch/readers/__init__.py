"""
Batch data source readers.
"""

from .csv_reader import CSVReader, clean_fields

__all__ = [
    "CSVReader",
    "clean_fields",
]
