"""
Exception hierarchy for the ingestion pipeline.

Read and decode failures abort the transform or validation call that owns
them; write failures are retried by the batch writer and then downgraded
to counts. None of these escape a workflow execution.
"""


class IngestionError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(IngestionError):
    """Raised when required configuration is missing or malformed."""


class SourceUnavailable(IngestionError):
    """Raised when a blob cannot be fetched from the blob store."""

    def __init__(self, key: str, message: str = "source unavailable"):
        self.key = key
        self.message = message
        super().__init__(f"{key}: {message}")


class DecodeError(IngestionError):
    """Raised when a blob is not valid UTF-8 CSV."""

    def __init__(self, key: str, message: str = "malformed CSV"):
        self.key = key
        self.message = message
        super().__init__(f"{key}: {message}")


class ValidationViolation(IngestionError):
    """
    Schema, type, uniqueness or referential violation found in an input file.

    Raised by the cell checks and collected into the validation report;
    never propagated past the validator.
    """

    def __init__(self, code: str, message: str, file: str | None = None):
        self.code = code
        self.message = message
        self.file = file
        super().__init__(f"[{code}] {file}: {message}" if file else f"[{code}] {message}")


class StoreWriteError(IngestionError):
    """Base class for keyed store write failures."""


class ThrottledWrite(StoreWriteError):
    """Some items of a bulk put were returned unprocessed."""

    def __init__(self, unprocessed: list):
        self.unprocessed = unprocessed
        super().__init__(f"{len(unprocessed)} items unprocessed")


class TransportError(StoreWriteError):
    """The bulk put request itself failed (network or service error)."""
