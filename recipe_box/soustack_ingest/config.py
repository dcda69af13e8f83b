"""Environment-backed settings for the adapters and the command line."""
from __future__ import annotations

import logging
import os
from collections.abc import Iterable

from .prep import DEFAULT_PREP_MODE, PrepExtractionMode

logger = logging.getLogger(__name__)

PREP_MODE_ENV = "RECIPE_INGEST_PREP_MODE"
PDF_BACKENDS_ENV = "RECIPE_INGEST_PDF_BACKENDS"
MIN_PDF_CHARS_ENV = "RECIPE_INGEST_MIN_PDF_CHARS"

DEFAULT_PDF_BACKENDS = [
    "pypdf",
    "pdfminer",
    "pikepdf+pypdf",
    "pikepdf+pdfminer",
]
# A single short recipe card can legitimately hold only a few lines of text.
DEFAULT_MIN_PDF_CHARS = 40


def parse_backend_list(value: str | None) -> list[str] | None:
    if not value:
        return None
    parts = [entry.strip() for entry in value.split(",") if entry.strip()]
    return parts or None


def resolve_prep_mode(value: str | PrepExtractionMode | None = None) -> PrepExtractionMode:
    """Explicit value first, then ``RECIPE_INGEST_PREP_MODE``, then conservative."""

    if value is not None:
        return PrepExtractionMode(value)
    env_value = os.environ.get(PREP_MODE_ENV)
    if env_value:
        try:
            return PrepExtractionMode(env_value.strip().lower())
        except ValueError:
            logger.warning("Ignoring invalid %s value: %s", PREP_MODE_ENV, env_value)
    return DEFAULT_PREP_MODE


def resolve_pdf_backends(prefer_backends: Iterable[str] | None = None) -> list[str]:
    if prefer_backends:
        order = [backend.strip() for backend in prefer_backends if backend and backend.strip()]
    else:
        order = parse_backend_list(os.environ.get(PDF_BACKENDS_ENV)) or list(DEFAULT_PDF_BACKENDS)
    unique_order = list(dict.fromkeys(order))
    return unique_order or list(DEFAULT_PDF_BACKENDS)


def resolve_min_pdf_chars(value: int | None = None) -> int:
    if value is not None:
        return max(value, 0)
    env_value = os.environ.get(MIN_PDF_CHARS_ENV)
    if env_value:
        try:
            return max(int(env_value), 0)
        except ValueError:
            logger.debug("Invalid %s value: %s", MIN_PDF_CHARS_ENV, env_value)
    return DEFAULT_MIN_PDF_CHARS
