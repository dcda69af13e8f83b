"""Exceptions raised by the input and output layers."""
from __future__ import annotations


class IngestError(Exception):
    """Base class for failures that stop a single input from being ingested."""


class UnsupportedFormatError(IngestError):
    pass


class AdapterError(IngestError):
    pass


class UnsafeArchiveError(IngestError):
    pass
