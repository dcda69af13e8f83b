"""Projection of extracted recipes onto the soustack lite record."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from .extract import IntermediateRecipe

SCHEMA_URL = "https://soustack.ai/schemas/recipe.schema.json"
PROFILE = "lite"
PIPELINE_VERSION = "0.1.0"

MINOR_WORDS = frozenset(
    {
        "a",
        "an",
        "the",
        "and",
        "but",
        "or",
        "nor",
        "for",
        "so",
        "yet",
        "as",
        "at",
        "by",
        "in",
        "of",
        "off",
        "on",
        "per",
        "to",
        "up",
        "via",
        "with",
        "from",
    }
)


def now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def _capitalize(word: str) -> str:
    for index, char in enumerate(word):
        if char.isalpha():
            return word[:index] + char.upper() + word[index + 1 :]
    return word


def title_case(title: str) -> str:
    """Title-case ``title`` keeping minor words lowercase unless first or last.

    All-caps input is lowered first so that "SUMMER SALAD" reads "Summer Salad".
    """

    text = " ".join(title.split())
    letters = [char for char in text if char.isalpha()]
    if letters and all(char.isupper() for char in letters):
        text = text.lower()
    words = text.split(" ")
    last = len(words) - 1
    cased: list[str] = []
    for index, word in enumerate(words):
        bare = word.strip("()[]\"'.,;:!?").lower()
        if 0 < index < last and bare in MINOR_WORDS:
            cased.append(word.lower())
        else:
            cased.append(_capitalize(word))
    return " ".join(cased)


def build_prep_block(intermediate: IntermediateRecipe, timestamp: str) -> dict[str, Any] | None:
    if not intermediate.prep_section and not intermediate.ingredient_prep:
        return None
    block: dict[str, Any] = {}
    if intermediate.prep_section:
        block["section"] = list(intermediate.prep_section)
    if intermediate.ingredient_prep:
        block["ingredients"] = [entry.to_dict() for entry in intermediate.ingredient_prep]
    block["generatedAt"] = timestamp
    return block


def build_metadata(
    intermediate: IntermediateRecipe,
    *,
    source_path: str | None,
    warnings: Iterable[str],
) -> dict[str, Any]:
    metadata: dict[str, Any] = {"originalTitle": intermediate.title}
    if intermediate.source.author:
        metadata["author"] = intermediate.source.author
    if intermediate.notes:
        metadata["notes"] = list(intermediate.notes)
    ingest: dict[str, Any] = {"pipelineVersion": PIPELINE_VERSION}
    if source_path is not None:
        ingest["sourcePath"] = source_path
    ingest["sourceLines"] = {
        "start": intermediate.source.start_line,
        "end": intermediate.source.end_line,
    }
    ingest["warnings"] = list(warnings)
    metadata["ingest"] = ingest
    return metadata


def to_soustack(
    intermediate: IntermediateRecipe,
    source_path: str | None = None,
    warnings: Iterable[str] | None = None,
    timestamp: str | None = None,
) -> dict[str, Any]:
    recipe: dict[str, Any] = {
        "$schema": SCHEMA_URL,
        "profile": PROFILE,
        "name": title_case(intermediate.title),
        "stacks": {},
        "ingredients": list(intermediate.ingredients),
        "instructions": list(intermediate.instructions),
    }
    prep = build_prep_block(intermediate, timestamp or now_iso())
    if prep is not None:
        recipe["x-prep"] = prep
    recipe["metadata"] = build_metadata(
        intermediate, source_path=source_path, warnings=warnings or []
    )
    return recipe
