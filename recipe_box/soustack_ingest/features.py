"""Per-line layout and lexical features used by segmentation and extraction."""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from .lines import Line

UNICODE_FRACTIONS = "¼½¾⅓⅔⅛⅜⅝⅞"

BULLET_RE = re.compile(r"^[-*•·‣◦–—]\s*")
ORDINAL_RE = re.compile(r"^(?:step\s*\d+[:.)]?\s*|\d+[.)]\s+)", re.IGNORECASE)

TITLE_BLOCKED_VERBS = ("add", "mix", "remove", "cook", "bake", "stir", "heat")

IMPERATIVE_VERBS = (
    "add",
    "bake",
    "beat",
    "blend",
    "boil",
    "bring",
    "broil",
    "chop",
    "combine",
    "cook",
    "dice",
    "drain",
    "fold",
    "fry",
    "grill",
    "heat",
    "knead",
    "let",
    "melt",
    "mix",
    "place",
    "pour",
    "preheat",
    "remove",
    "roast",
    "saute",
    "season",
    "serve",
    "simmer",
    "slice",
    "sprinkle",
    "spread",
    "stir",
    "toast",
    "toss",
    "transfer",
    "whisk",
)

UNIT_TOKENS = (
    "cup",
    "cups",
    "tbsp",
    "tbs",
    "tablespoon",
    "tablespoons",
    "tsp",
    "teaspoon",
    "teaspoons",
    "oz",
    "ounce",
    "ounces",
    "g",
    "gram",
    "grams",
    "kg",
    "ml",
    "l",
    "liter",
    "liters",
    "litre",
    "litres",
    "lb",
    "lbs",
    "pound",
    "pounds",
    "pinch",
    "dash",
    "clove",
    "cloves",
    "slice",
    "slices",
    "can",
    "cans",
    "piece",
    "pieces",
    "stick",
    "sticks",
    "bunch",
    "handful",
)

_UNIT_PATTERN = "|".join(re.escape(unit) for unit in UNIT_TOKENS)
_QUANTITY_PATTERN = (
    rf"(?:\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?(?:\s*-\s*\d+(?:\.\d+)?)?\s*[{UNICODE_FRACTIONS}]?"
    rf"|[{UNICODE_FRACTIONS}])"
)

QUANTITY_RE = re.compile(rf"^{_QUANTITY_PATTERN}(?=\s|[A-Za-z]|$)")
QUANTITY_UNIT_RE = re.compile(rf"^{_QUANTITY_PATTERN}\s*(?:{_UNIT_PATTERN})\.?(?![A-Za-z])", re.IGNORECASE)
LOOSE_UNIT_RE = re.compile(rf"\b(?:{_UNIT_PATTERN})\b", re.IGNORECASE)
IMPERATIVE_RE = re.compile(rf"^(?:{'|'.join(IMPERATIVE_VERBS)})\b", re.IGNORECASE)
TITLE_BLOCKED_RE = re.compile(rf"^(?:{'|'.join(TITLE_BLOCKED_VERBS)})\b", re.IGNORECASE)

INGREDIENTS_MARKER_RE = re.compile(r"^ingredients?\s*:?$", re.IGNORECASE)
INSTRUCTION_MARKER_RE = re.compile(
    r"^(?:instructions?|directions?|method|steps?|step\s*\d+[.)]?)\s*:?$",
    re.IGNORECASE,
)
BYLINE_RE = re.compile(r"^(?:by|from)(?::|\s+\S|$)", re.IGNORECASE)
BYLINE_MARKER_RE = re.compile(r"^(?:by|from)\s*:?$", re.IGNORECASE)

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 72
TITLE_MAX_WORDS = 10
TITLE_MIN_LETTER_RATIO = 0.6
TITLE_MIN_CAPITALIZED_RATIO = 0.6
UNITLESS_INGREDIENT_MAX_WORDS = 8


@dataclass(frozen=True)
class LineFeatures:
    is_blank: bool
    is_title_like: bool
    is_all_caps_title: bool
    has_ingredients_marker: bool
    has_instruction_marker: bool
    is_ingredient_line: bool
    is_imperative_line: bool


def strip_list_marker(text: str) -> str:
    stripped = BULLET_RE.sub("", text.strip())
    return ORDINAL_RE.sub("", stripped).strip()


def is_ingredients_marker(text: str) -> bool:
    return bool(INGREDIENTS_MARKER_RE.match(text.strip()))


def is_instruction_marker(text: str) -> bool:
    return bool(INSTRUCTION_MARKER_RE.match(text.strip()))


def is_section_header(text: str) -> bool:
    return is_ingredients_marker(text) or is_instruction_marker(text)


def is_byline(text: str) -> bool:
    return bool(BYLINE_RE.match(text.strip()))


def is_byline_marker(text: str) -> bool:
    return bool(BYLINE_MARKER_RE.match(text.strip()))


def is_ingredient_line(text: str) -> bool:
    stripped = text.strip()
    if not stripped:
        return False
    if BULLET_RE.match(stripped):
        return True
    if QUANTITY_UNIT_RE.match(stripped):
        return True
    if QUANTITY_RE.match(stripped) and len(stripped.split()) <= UNITLESS_INGREDIENT_MAX_WORDS:
        return True
    return bool(LOOSE_UNIT_RE.search(stripped))


def is_imperative_line(text: str) -> bool:
    stripped = text.strip()
    if not stripped or is_section_header(stripped):
        return False
    return bool(IMPERATIVE_RE.match(strip_list_marker(stripped)))


def is_all_caps_title(text: str) -> bool:
    letters = "".join(char for char in text.strip() if char.isalpha())
    return bool(letters) and letters == letters.upper()


def _capitalized_ratio(words: Sequence[str]) -> float:
    lettered = [word for word in words if any(char.isalpha() for char in word)]
    if not lettered:
        return 0.0
    capitalized = 0
    for word in lettered:
        first_letter = next(char for char in word if char.isalpha())
        if first_letter.isupper():
            capitalized += 1
    return capitalized / len(lettered)


def is_title_like(text: str, *, check_capitalization: bool) -> bool:
    stripped = text.strip()
    if not stripped:
        return False
    if stripped[-1] in ".:;!?":
        return False
    if stripped[0].isdigit() or stripped[0] in UNICODE_FRACTIONS:
        return False
    if BULLET_RE.match(stripped):
        return False
    if TITLE_BLOCKED_RE.match(stripped):
        return False
    if not TITLE_MIN_LENGTH <= len(stripped) <= TITLE_MAX_LENGTH:
        return False
    words = stripped.split()
    if len(words) > TITLE_MAX_WORDS:
        return False
    letters = sum(1 for char in stripped if char.isalpha())
    if letters / len(stripped) < TITLE_MIN_LETTER_RATIO:
        return False
    if check_capitalization and _capitalized_ratio(words) < TITLE_MIN_CAPITALIZED_RATIO:
        return False
    return True


def line_features(lines: Sequence[Line], index: int) -> LineFeatures:
    text = lines[index].text
    total = len(lines)
    prev_blank = index > 0 and not lines[index - 1].text.strip()
    next_blank = index < total - 1 and not lines[index + 1].text.strip()
    near_edge = index < 2 or index >= total - 2
    return LineFeatures(
        is_blank=not text.strip(),
        is_title_like=is_title_like(text, check_capitalization=prev_blank or next_blank or near_edge),
        is_all_caps_title=is_all_caps_title(text),
        has_ingredients_marker=is_ingredients_marker(text),
        has_instruction_marker=is_instruction_marker(text),
        is_ingredient_line=is_ingredient_line(text),
        is_imperative_line=is_imperative_line(text),
    )


def features(lines: Sequence[Line]) -> list[LineFeatures]:
    return [line_features(lines, index) for index in range(len(lines))]
