"""Recipe text segmentation and soustack ingestion package."""
from __future__ import annotations

from . import (
    adapters,
    assemble,
    config,
    emit,
    errors,
    extract,
    features,
    lines,
    pipeline,
    prep,
    segment,
    validate,
)

__version__ = "0.1.0"

__all__ = [
    "adapters",
    "assemble",
    "config",
    "emit",
    "errors",
    "extract",
    "features",
    "lines",
    "pipeline",
    "prep",
    "segment",
    "validate",
]
