"""End-to-end ingestion: adapter, segmentation, extraction, validation and emission."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from .adapters import AdapterOutput, load_input
from .assemble import now_iso, to_soustack
from .config import resolve_prep_mode
from .emit import emit, write_report
from .extract import extract
from .lines import normalize
from .prep import PrepExtractionMode
from .segment import FALLBACK_CONFIDENCE, segment
from .validate import validate

logger = logging.getLogger(__name__)

MISSING_SECTIONS_REASON = "Missing ingredients or instructions"

STATUS_OK = "ok"
STATUS_SKIPPED = "skipped"


@dataclass
class ChunkOutcome:
    start_line: int
    end_line: int
    title: str
    confidence: float
    evidence: str
    status: str = STATUS_OK
    name: str | None = None
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class IngestResult:
    source_path: str | None
    recipes: list[dict[str, Any]] = field(default_factory=list)
    outcomes: list[ChunkOutcome] = field(default_factory=list)
    adapter: AdapterOutput | None = None

    @property
    def skipped(self) -> list[ChunkOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == STATUS_SKIPPED]

    def errors(self) -> list[str]:
        return [f"{outcome.title}: {reason}" for outcome in self.skipped for reason in outcome.reasons]

    def report(self, timestamp: str | None = None) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": timestamp or now_iso(),
            "source": self.source_path,
            "chunks": [outcome.to_dict() for outcome in self.outcomes],
            "counts": {
                "chunks": len(self.outcomes),
                "recipes": len(self.recipes),
                "skipped": len(self.skipped),
            },
        }
        if self.adapter is not None:
            data["adapter"] = self.adapter.to_dict()
        return data


def chunk_warnings(confidence: float, inferred: bool) -> list[str]:
    warnings: list[str] = []
    if confidence <= FALLBACK_CONFIDENCE:
        warnings.append(f"low segmentation confidence ({confidence:.2f})")
    if inferred:
        warnings.append("ingredients inferred from instructions")
    return warnings


def ingest_text(
    text: str,
    *,
    source_path: str | None = None,
    prep_mode: str | PrepExtractionMode | None = None,
    warnings: Iterable[str] | None = None,
    debug: bool = False,
    timestamp: str | None = None,
) -> IngestResult:
    """Turn raw text into validated soustack records.

    Chunks with no ingredients or no instructions, and records the validator
    rejects, are recorded as skipped outcomes instead of raising.
    """

    mode = resolve_prep_mode(prep_mode)
    stamp = timestamp or now_iso()
    base_warnings = list(warnings or [])
    normalized = normalize(text)
    segmented = segment(normalized.lines, debug=debug)
    result = IngestResult(source_path=source_path)

    for chunk in segmented.chunks:
        intermediate = extract(chunk, normalized.lines, prep_mode=mode)
        outcome = ChunkOutcome(
            start_line=chunk.start_line,
            end_line=chunk.end_line,
            title=intermediate.title,
            confidence=round(chunk.confidence, 4),
            evidence=chunk.evidence,
        )
        result.outcomes.append(outcome)
        if not intermediate.ingredients or not intermediate.instructions:
            outcome.status = STATUS_SKIPPED
            outcome.reasons.append(MISSING_SECTIONS_REASON)
            logger.info(
                "Skipping %r (lines %d-%d): %s",
                intermediate.title,
                chunk.start_line,
                chunk.end_line,
                MISSING_SECTIONS_REASON,
            )
            continue

        recipe = to_soustack(
            intermediate,
            source_path=source_path,
            warnings=base_warnings + chunk_warnings(chunk.confidence, intermediate.ingredients_inferred),
            timestamp=stamp,
        )
        outcome.name = recipe["name"]
        validation = validate(recipe)
        if not validation.ok:
            outcome.status = STATUS_SKIPPED
            outcome.reasons.extend(validation.errors)
            logger.warning("Validation failed for %r: %s", recipe["name"], "; ".join(validation.errors))
            continue
        result.recipes.append(recipe)

    logger.debug("Extracted %d of %d chunk(s)", len(result.recipes), len(result.outcomes))
    return result


def ingest_file(
    path: str | Path,
    *,
    prep_mode: str | PrepExtractionMode | None = None,
    min_pdf_chars: int | None = None,
    pdf_backends: Iterable[str] | None = None,
    debug: bool = False,
    timestamp: str | None = None,
) -> IngestResult:
    adapter_output = load_input(path, min_pdf_chars=min_pdf_chars, pdf_backends=pdf_backends)
    result = ingest_text(
        adapter_output.text,
        source_path=adapter_output.source_path,
        prep_mode=prep_mode,
        warnings=adapter_output.warnings,
        debug=debug,
        timestamp=timestamp,
    )
    result.adapter = adapter_output
    return result


def run(
    path: str | Path,
    out_dir: str | Path,
    *,
    prep_mode: str | PrepExtractionMode | None = None,
    min_pdf_chars: int | None = None,
    pdf_backends: Iterable[str] | None = None,
    debug: bool = False,
) -> IngestResult:
    timestamp = now_iso()
    result = ingest_file(
        path,
        prep_mode=prep_mode,
        min_pdf_chars=min_pdf_chars,
        pdf_backends=pdf_backends,
        debug=debug,
        timestamp=timestamp,
    )
    emit(result.recipes, out_dir)
    write_report(out_dir, result.report(timestamp))
    return result
