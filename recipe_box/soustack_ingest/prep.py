"""Mise-en-place descriptors pulled out of ingredient lines."""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from enum import Enum


class PrepExtractionMode(str, Enum):
    CONSERVATIVE = "conservative"
    AGGRESSIVE = "aggressive"


DEFAULT_PREP_MODE = PrepExtractionMode.CONSERVATIVE

PREP_BASE_WORDS = frozenset(
    {
        "chopped",
        "minced",
        "diced",
        "sliced",
        "grated",
        "shredded",
        "zested",
        "juiced",
        "peeled",
        "seeded",
        "drained",
        "rinsed",
        "softened",
        "melted",
        "cooled",
        "thawed",
        "toasted",
        "crushed",
        "ground",
    }
)
PREP_MODIFIERS = frozenset({"finely", "roughly", "coarsely", "thinly", "thickly"})
PREP_ADJECTIVES = frozenset({"soft"})
PREP_INTENSIFIERS = frozenset({"very", "extra", "super", "really"})

ROOM_TEMPERATURE_RE = re.compile(r"^(?:at\s+)?room\s+temp(?:erature)?$")
PARENTHETICAL_RE = re.compile(r"\(([^)]+)\)")
TRAILING_PUNCTUATION_RE = re.compile(r"[.!?]+$")
WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class IngredientPrep:
    index: int
    raw: str
    base: str
    prep: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class PrepSplit:
    base: str
    prep: list[str] = field(default_factory=list)


def normalize_prep_token(token: str, mode: PrepExtractionMode) -> str | None:
    """Return the canonical descriptor for ``token`` or ``None`` when it is not prep."""

    cleaned = TRAILING_PUNCTUATION_RE.sub("", token.lower())
    cleaned = WHITESPACE_RE.sub(" ", cleaned).strip()
    if not cleaned:
        return None
    if ROOM_TEMPERATURE_RE.match(cleaned):
        return "room temperature"
    if cleaned in PREP_BASE_WORDS:
        return cleaned
    if mode is not PrepExtractionMode.AGGRESSIVE:
        return None
    words = cleaned.split(" ")
    if len(words) == 2:
        modifier, base = words
        if modifier in PREP_MODIFIERS and base in PREP_BASE_WORDS:
            return cleaned
        if modifier in PREP_INTENSIFIERS and base in PREP_ADJECTIVES:
            return cleaned
    if cleaned in PREP_ADJECTIVES:
        return cleaned
    return None


def _strip_parentheticals(text: str, mode: PrepExtractionMode, prep: list[str]) -> str:
    def replace(match: re.Match[str]) -> str:
        tokens = [token.strip() for token in match.group(1).split(",") if token.strip()]
        kept: list[str] = []
        for token in tokens:
            normalized = normalize_prep_token(token, mode)
            if normalized:
                prep.append(normalized)
            else:
                kept.append(token)
        return f"({', '.join(kept)})" if kept else ""

    return WHITESPACE_RE.sub(" ", PARENTHETICAL_RE.sub(replace, text)).strip()


def _strip_trailing_clauses(text: str, mode: PrepExtractionMode, prep: list[str]) -> str:
    segments = [segment.strip() for segment in text.split(",") if segment.strip()]
    if len(segments) <= 1:
        return text
    kept = segments[:1]
    for segment in segments[1:]:
        normalized = normalize_prep_token(segment, mode)
        if normalized:
            prep.append(normalized)
        else:
            kept.append(segment)
    return ", ".join(kept).strip()


def split_leading_prep(text: str, mode: PrepExtractionMode) -> PrepSplit | None:
    if mode is not PrepExtractionMode.AGGRESSIVE:
        return None
    words = text.split()
    if len(words) < 3:
        return None
    normalized = normalize_prep_token(f"{words[0]} {words[1]}", mode)
    if not normalized:
        return None
    return PrepSplit(base=" ".join(words[2:]), prep=[normalized])


def extract_ingredient_prep(
    raw: str, mode: PrepExtractionMode = DEFAULT_PREP_MODE
) -> PrepSplit:
    """Separate an ingredient line into its base text and prep descriptors.

    Parenthetical tokens are examined first, then comma clauses after the
    first, and in aggressive mode a leading two-word phrase such as
    "finely chopped onion".
    """

    prep: list[str] = []
    base = _strip_parentheticals(raw.strip(), mode, prep)
    base = _strip_trailing_clauses(base, mode, prep)
    leading = split_leading_prep(base, mode)
    if leading is not None:
        prep.extend(leading.prep)
        base = leading.base
    return PrepSplit(base=base, prep=prep)


def collect_ingredient_prep(
    ingredients: list[str], mode: PrepExtractionMode = DEFAULT_PREP_MODE
) -> list[IngredientPrep]:
    entries: list[IngredientPrep] = []
    for index, ingredient in enumerate(ingredients):
        split = extract_ingredient_prep(ingredient, mode)
        if split.prep:
            entries.append(IngredientPrep(index=index, raw=ingredient, base=split.base, prep=split.prep))
    return entries
