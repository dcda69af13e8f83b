from __future__ import annotations

import pytest

from recipe_box.soustack_ingest import prep
from recipe_box.soustack_ingest.prep import PrepExtractionMode

AGGRESSIVE = PrepExtractionMode.AGGRESSIVE
CONSERVATIVE = PrepExtractionMode.CONSERVATIVE


@pytest.mark.parametrize(
    ("raw", "mode", "base", "descriptors"),
    [
        ("1 cup butter, softened", CONSERVATIVE, "1 cup butter", ["softened"]),
        ("2 cups carrots, chopped", CONSERVATIVE, "2 cups carrots", ["chopped"]),
        ("2 cups carrots, finely chopped", AGGRESSIVE, "2 cups carrots", ["finely chopped"]),
        ("2 cups carrots, finely chopped", CONSERVATIVE, "2 cups carrots, finely chopped", []),
        ("1 cup butter (softened)", CONSERVATIVE, "1 cup butter", ["softened"]),
        ("1 onion (large, diced)", CONSERVATIVE, "1 onion (large)", ["diced"]),
        ("2 eggs (at room temp)", CONSERVATIVE, "2 eggs", ["room temperature"]),
        ("2 eggs, room temperature", CONSERVATIVE, "2 eggs", ["room temperature"]),
        ("butter, very soft", AGGRESSIVE, "butter", ["very soft"]),
        ("butter, very soft", CONSERVATIVE, "butter, very soft", []),
        ("finely chopped parsley leaves", AGGRESSIVE, "parsley leaves", ["finely chopped"]),
        ("finely chopped parsley leaves", CONSERVATIVE, "finely chopped parsley leaves", []),
        ("1 can beans, drained, rinsed", CONSERVATIVE, "1 can beans", ["drained", "rinsed"]),
        ("salt, to taste", AGGRESSIVE, "salt, to taste", []),
    ],
)
def test_extract_ingredient_prep(raw: str, mode: PrepExtractionMode, base: str, descriptors: list[str]) -> None:
    split = prep.extract_ingredient_prep(raw, mode)
    assert split.base == base
    assert split.prep == descriptors


def test_normalize_prep_token() -> None:
    assert prep.normalize_prep_token("Minced.", CONSERVATIVE) == "minced"
    assert prep.normalize_prep_token("room   temperature", CONSERVATIVE) == "room temperature"
    assert prep.normalize_prep_token("thinly sliced", CONSERVATIVE) is None
    assert prep.normalize_prep_token("thinly sliced", AGGRESSIVE) == "thinly sliced"
    assert prep.normalize_prep_token("soft", AGGRESSIVE) == "soft"
    assert prep.normalize_prep_token("large", AGGRESSIVE) is None
    assert prep.normalize_prep_token("", AGGRESSIVE) is None


def test_leading_prep_needs_three_words() -> None:
    assert prep.split_leading_prep("finely chopped", AGGRESSIVE) is None
    assert prep.split_leading_prep("finely chopped onion", CONSERVATIVE) is None


def test_collect_ingredient_prep_keeps_only_entries_with_descriptors() -> None:
    entries = prep.collect_ingredient_prep(["1 apple", "2 cloves garlic, minced", "salt"], CONSERVATIVE)
    assert len(entries) == 1
    entry = entries[0]
    assert entry.index == 1
    assert entry.raw == "2 cloves garlic, minced"
    assert entry.base == "2 cloves garlic"
    assert entry.prep == ["minced"]


def test_prep_mode_values() -> None:
    assert PrepExtractionMode("aggressive") is AGGRESSIVE
    assert prep.DEFAULT_PREP_MODE is CONSERVATIVE
