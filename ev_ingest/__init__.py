"""
EV charging data ingestion: validate, transform and batch-load CSV files
into a key-value store.
"""

__version__ = "0.1.0"
