"""Recipe boundary detection over the per-line feature stream."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

from .features import LineFeatures, features, is_byline, is_byline_marker, is_section_header
from .lines import Line

logger = logging.getLogger(__name__)

STRUCTURED_MARKER_THRESHOLD = 5
LOOKAHEAD_LINES = 8
INGREDIENT_DENSITY_THRESHOLD = 0.25
IMPERATIVE_DENSITY_THRESHOLD = 0.30
ALL_CAPS_IMPERATIVE_THRESHOLD = 0.20
SHORT_HEADER_LENGTH = 20
DEDUPE_DISTANCE = 3
DEDUPE_SCORE_MARGIN = 0.1
FALLBACK_CONFIDENCE = 0.2


class SegmentationReason(str, Enum):
    INGREDIENT_DENSITY = "ingredient-density"
    IMPERATIVE_DENSITY = "imperative-density"
    ALL_CAPS_IMPERATIVE = "all-caps-imperative"


@dataclass(frozen=True)
class Chunk:
    start_line: int
    end_line: int
    title_guess: str | None
    confidence: float
    evidence: str
    segmentation_reason: SegmentationReason | None = None


@dataclass
class SegmentedText:
    chunks: list[Chunk] = field(default_factory=list)


@dataclass(frozen=True)
class _Candidate:
    index: int
    score: float
    density: float
    imperative: float
    reason: SegmentationReason


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _window(feats: Sequence[LineFeatures], index: int) -> list[LineFeatures]:
    window: list[LineFeatures] = []
    for feat in feats[index + 1 :]:
        if feat.is_blank:
            continue
        window.append(feat)
        if len(window) == LOOKAHEAD_LINES:
            break
    return window


def _fraction(window: Sequence[LineFeatures], attribute: str) -> float:
    if not window:
        return 0.0
    return sum(1 for feat in window if getattr(feat, attribute)) / len(window)


def _is_after_byline_marker(lines: Sequence[Line], index: int) -> bool:
    scan = index - 1
    while scan >= 0 and not lines[scan].text.strip():
        scan -= 1
    return scan >= 0 and is_byline_marker(lines[scan].text)


def _has_marker_ahead(lines: Sequence[Line], feats: Sequence[LineFeatures], index: int) -> bool:
    for offset in range(index + 1, min(len(lines), index + 1 + LOOKAHEAD_LINES)):
        if feats[offset].has_ingredients_marker or is_byline(lines[offset].text):
            return True
    return False


def _structured_starts(lines: Sequence[Line], feats: Sequence[LineFeatures]) -> list[int]:
    starts: set[int] = set()
    previous_marker = -1
    for marker_index, feat in enumerate(feats):
        if not feat.has_ingredients_marker:
            continue
        for scan in range(marker_index - 1, previous_marker, -1):
            candidate = feats[scan]
            text = lines[scan].text
            if not candidate.is_title_like or candidate.is_ingredient_line:
                continue
            if is_byline(text) or _is_after_byline_marker(lines, scan):
                continue
            if not _has_marker_ahead(lines, feats, scan):
                continue
            starts.add(scan)
            break
        previous_marker = marker_index
    return sorted(starts)


def structured_cookbook_chunks(
    lines: Sequence[Line], feats: Sequence[LineFeatures]
) -> list[Chunk] | None:
    """Boundaries anchored on explicit "Ingredients" headings."""

    marker_count = sum(1 for feat in feats if feat.has_ingredients_marker)
    if marker_count < STRUCTURED_MARKER_THRESHOLD:
        return None
    starts = _structured_starts(lines, feats)
    if not starts:
        return None
    chunks: list[Chunk] = []
    for position, start in enumerate(starts):
        end = starts[position + 1] - 1 if position + 1 < len(starts) else len(lines) - 1
        chunks.append(
            Chunk(
                start_line=lines[start].n,
                end_line=lines[end].n,
                title_guess=lines[start].text.strip(),
                confidence=0.0,
                evidence=f"structured cookbook: {marker_count} ingredients markers",
            )
        )
    return chunks


def _is_rejected_candidate(lines: Sequence[Line], feats: Sequence[LineFeatures], index: int) -> bool:
    feat = feats[index]
    text = lines[index].text.strip()
    if feat.is_ingredient_line:
        return True
    if is_byline(text):
        return True
    if len(text) < SHORT_HEADER_LENGTH and is_section_header(text):
        return True
    if feat.is_imperative_line and index > 0 and not feats[index - 1].is_blank:
        return True
    return False


def _score_candidate(feats: Sequence[LineFeatures], index: int) -> _Candidate | None:
    window = _window(feats, index)
    density = _fraction(window, "is_ingredient_line")
    imperative = _fraction(window, "is_imperative_line")
    if density >= INGREDIENT_DENSITY_THRESHOLD:
        reason = SegmentationReason.INGREDIENT_DENSITY
    elif imperative >= IMPERATIVE_DENSITY_THRESHOLD:
        reason = SegmentationReason.IMPERATIVE_DENSITY
    elif feats[index].is_all_caps_title and imperative >= ALL_CAPS_IMPERATIVE_THRESHOLD:
        reason = SegmentationReason.ALL_CAPS_IMPERATIVE
    else:
        return None
    score = clamp(0.6 + 0.8 * max(density, imperative))
    return _Candidate(index=index, score=score, density=density, imperative=imperative, reason=reason)


def _dedupe_candidates(candidates: Sequence[_Candidate]) -> list[_Candidate]:
    kept: list[_Candidate] = []
    for candidate in candidates:
        if kept and candidate.index - kept[-1].index <= DEDUPE_DISTANCE:
            if candidate.score > kept[-1].score + DEDUPE_SCORE_MARGIN:
                kept[-1] = candidate
            continue
        kept.append(candidate)
    return kept


def title_candidate_chunks(
    lines: Sequence[Line], feats: Sequence[LineFeatures], *, debug: bool = False
) -> list[Chunk] | None:
    """Boundaries at title-like lines followed by ingredient or imperative density."""

    candidates: list[_Candidate] = []
    for index, feat in enumerate(feats):
        if not feat.is_title_like or _is_rejected_candidate(lines, feats, index):
            continue
        scored = _score_candidate(feats, index)
        if scored is not None:
            candidates.append(scored)
    kept = _dedupe_candidates(candidates)
    if not kept:
        return None
    chunks: list[Chunk] = []
    for position, candidate in enumerate(kept):
        end = kept[position + 1].index - 1 if position + 1 < len(kept) else len(lines) - 1
        chunks.append(
            Chunk(
                start_line=lines[candidate.index].n,
                end_line=lines[end].n,
                title_guess=lines[candidate.index].text.strip(),
                confidence=0.0,
                evidence=(
                    f"title candidate ({candidate.reason.value}): "
                    f"ingredient density {candidate.density:.2f}, "
                    f"imperative density {candidate.imperative:.2f}"
                ),
                segmentation_reason=candidate.reason if debug else None,
            )
        )
    return chunks


def fallback_chunk(lines: Sequence[Line]) -> Chunk:
    first = next((line for line in lines if line.text.strip()), None)
    title_guess = first.text.strip() if first else None
    return Chunk(
        start_line=lines[0].n,
        end_line=lines[-1].n,
        title_guess=title_guess,
        confidence=FALLBACK_CONFIDENCE,
        evidence=(
            f"fallback: title guessed from line {first.n}"
            if first
            else "fallback: no non-empty lines to infer title"
        ),
    )


def chunk_confidence(lines: Sequence[Line], feats: Sequence[LineFeatures], chunk: Chunk) -> tuple[float, float]:
    positions = [index for index, line in enumerate(lines) if chunk.start_line <= line.n <= chunk.end_line]
    body = [feats[index] for index in positions if not feats[index].is_blank]
    density = _fraction(body, "is_ingredient_line")
    title_score = 1.0 if positions and feats[positions[0]].is_title_like else 0.0
    marker_score = 1.0 if any(feats[index].has_instruction_marker for index in positions) else 0.0
    return clamp(0.4 * title_score + 0.4 * density + 0.2 * marker_score), density


def segment(lines: Sequence[Line], *, debug: bool = False) -> SegmentedText:
    if not lines:
        return SegmentedText()
    feats = features(lines)
    marker_count = sum(1 for feat in feats if feat.has_ingredients_marker)
    if marker_count >= STRUCTURED_MARKER_THRESHOLD:
        chunks = structured_cookbook_chunks(lines, feats)
    else:
        chunks = title_candidate_chunks(lines, feats, debug=debug)
    if not chunks:
        chunk = fallback_chunk(lines)
        logger.debug("No recipe boundaries found; using whole input (%s)", chunk.evidence)
        return SegmentedText(chunks=[chunk])

    scored: list[Chunk] = []
    for chunk in chunks:
        confidence, density = chunk_confidence(lines, feats, chunk)
        scored.append(
            replace(
                chunk,
                confidence=confidence,
                evidence=f"{chunk.evidence}; chunk ingredient density {density:.2f}",
            )
        )
    segmented = SegmentedText(chunks=scored)
    if debug:
        for description in describe_chunks(segmented):
            logger.debug(description)
    return segmented


def describe_chunks(segmented: SegmentedText) -> list[str]:
    descriptions = []
    for chunk in segmented.chunks:
        if chunk.segmentation_reason is not None:
            reason = chunk.segmentation_reason.value
        else:
            reason = chunk.evidence.split(":", 1)[0]
        descriptions.append(f"{chunk.start_line}-{chunk.end_line}: {reason}")
    return descriptions
