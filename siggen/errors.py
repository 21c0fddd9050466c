# siggen/errors.py

from typing import List, Optional


class SigGenError(Exception):
    """Base class for everything the engine reports as a failure."""


class SourceError(SigGenError, OSError):
    """A template, table or output target could not be read or written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class SchemaError(SigGenError):
    """Table headers do not reconcile with the template placeholders."""

    def __init__(self, message: str, diagnostics: Optional[List[str]] = None):
        super().__init__(message)
        self.diagnostics = list(diagnostics or [])


class RowError(SigGenError):
    """A single data row is malformed. The row is skipped, the batch goes on."""

    def __init__(self, line_number: int, message: str):
        super().__init__(f"Row {line_number}: {message}")
        self.line_number = line_number


class DeliveryError(SigGenError):
    """Transport-level failure. Remaining deliveries in the batch are aborted."""
