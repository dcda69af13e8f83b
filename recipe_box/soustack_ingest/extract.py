"""Split a recipe chunk into title, author, ingredients and instructions."""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from .features import (
    BULLET_RE,
    IMPERATIVE_RE,
    UNICODE_FRACTIONS,
    UNIT_TOKENS,
    is_byline_marker,
    is_imperative_line,
    is_ingredient_line,
    is_ingredients_marker,
    is_instruction_marker,
)
from .lines import Line, slice_lines
from .prep import DEFAULT_PREP_MODE, IngredientPrep, PrepExtractionMode, collect_ingredient_prep
from .segment import Chunk

logger = logging.getLogger(__name__)

UNTITLED_RECIPE = "Untitled Recipe"

AUTHOR_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z.'-]*(?:\s+[A-Za-z][A-Za-z.'-]*){0,3}$")
INLINE_AUTHOR_RE = re.compile(r"^(?:by|from)[:\s]+(.+)$", re.IGNORECASE)
HEADER_SUFFIX_RE = re.compile(r"[:\s]+$")
STEP_PREFIX_RE = re.compile(r"^step\s*\d+[:.)]?\s*", re.IGNORECASE)
ORDINAL_PREFIX_RE = re.compile(r"^\d+[.)]\s+")

PREP_HEADERS = frozenset({"prep", "preparation", "mise en place", "mise-en-place", "before you start"})

INGREDIENT_STARTERS = ("salt", "pepper", "pinch", "dash")
LEADING_QUANTITY_RE = re.compile(r"^(?:\d+(?:[/-]\d+)?|\d+\s+\d/\d)\s+\w+")
LEADING_FRACTION_RE = re.compile(rf"^[{UNICODE_FRACTIONS}]\s+\w+")
LEADING_UNIT_RE = re.compile(
    r"^\d+\s*(?:cups?|tbsp|tablespoons?|tsp|teaspoons?|oz|ounces?|grams?|kg|ml|l)\b",
    re.IGNORECASE,
)
SENTENCE_END_RE = re.compile(r"[.!?]\s*$")
MULTI_WORD_RE = re.compile(r"\w+\s+\w+")
CLEAR_INSTRUCTION_RE = re.compile(
    r"^(?:mix|stir|cook|bake|toast|toss|combine|whisk|simmer|bring|add|preheat|heat|serve)\b",
    re.IGNORECASE,
)

DENSITY_SAMPLE_SIZE = 5
MIN_INGREDIENTS_BEFORE_SWITCH = 2

ADVERB_RE = re.compile(r"^(?:slowly|gently|carefully)\b", re.IGNORECASE)
PHRASE_SPLIT_RE = re.compile(
    r",|;|\band\b|\bor\b|\bwith\b|\binto\b|\bin\b|\bon\b|\bover\b|\bonto\b|\bfor\b|\bto\b|\buntil\b|\bthen\b",
    re.IGNORECASE,
)
DETERMINER_RE = re.compile(r"^(?:the|a|an|some|your)\b\s*", re.IGNORECASE)
CANDIDATE_QUANTITY_RE = re.compile(
    rf"^(?:\d+(?:[/-]\d+)?|\d+\s+\d/\d)\s+(?:{'|'.join(re.escape(unit) for unit in UNIT_TOKENS)})\b\s*",
    re.IGNORECASE,
)
TOOL_WORDS = frozenset(
    {"pan", "skillet", "pot", "bowl", "oven", "tray", "sheet", "plate", "dish", "rack", "knife", "spoon"}
)
MAX_CANDIDATE_WORDS = 4
MIN_IMPERATIVE_LINES = 2
MIN_INFERRED_INGREDIENTS = 2


class Mode(Enum):
    UNKNOWN = "unknown"
    INGREDIENTS = "ingredients"
    INSTRUCTIONS = "instructions"
    PREP = "prep"


@dataclass
class RecipeSource:
    start_line: int
    end_line: int
    evidence: str
    author: str | None = None


@dataclass
class IntermediateRecipe:
    title: str
    ingredients: list[str]
    instructions: list[str]
    source: RecipeSource
    prep_section: list[str] | None = None
    ingredient_prep: list[IngredientPrep] | None = None
    notes: list[str] = field(default_factory=list)
    ingredients_inferred: bool = False


@dataclass
class Sections:
    ingredients: list[str] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)
    prep: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    explicit: bool = False


@dataclass
class AuthorScan:
    author: str | None
    lines: list[Line]


def is_author_name(text: str) -> bool:
    return bool(AUTHOR_NAME_RE.match(text))


def is_prep_header(text: str) -> bool:
    return HEADER_SUFFIX_RE.sub("", text.lower()) in PREP_HEADERS


def header_mode(text: str) -> Mode | None:
    if is_ingredients_marker(text):
        return Mode.INGREDIENTS
    if is_instruction_marker(text):
        return Mode.INSTRUCTIONS
    if is_prep_header(text):
        return Mode.PREP
    return None


def clean_ingredient(text: str) -> str:
    return BULLET_RE.sub("", text).strip()


def clean_instruction(text: str) -> str:
    return ORDINAL_PREFIX_RE.sub("", STEP_PREFIX_RE.sub("", text)).strip()


def clean_prep(text: str) -> str:
    return clean_instruction(clean_ingredient(text))


def looks_like_ingredient(text: str) -> bool:
    lowered = text.lower()
    return bool(
        BULLET_RE.match(text)
        or LEADING_QUANTITY_RE.match(text)
        or LEADING_FRACTION_RE.match(text)
        or LEADING_UNIT_RE.match(text)
        or lowered.startswith(INGREDIENT_STARTERS)
    )


def looks_like_instruction(text: str) -> bool:
    return bool(ORDINAL_PREFIX_RE.match(text) or SENTENCE_END_RE.search(text) or MULTI_WORD_RE.search(text))


def reads_as_instruction(text: str) -> bool:
    return bool(SENTENCE_END_RE.search(text) or CLEAR_INSTRUCTION_RE.match(text))


def isolate_title(chunk: Chunk, lines: Sequence[Line]) -> tuple[str, list[Line]]:
    relevant = slice_lines(list(lines), chunk.start_line, chunk.end_line)
    title_guess = chunk.title_guess.strip() if chunk.title_guess else None
    if title_guess:
        for index, line in enumerate(relevant):
            if line.text.strip() == title_guess:
                return title_guess, relevant[:index] + relevant[index + 1 :]
        return title_guess, relevant
    for index, line in enumerate(relevant):
        if line.text.strip():
            return line.text.strip(), relevant[:index] + relevant[index + 1 :]
    return UNTITLED_RECIPE, relevant


def extract_author(lines: Sequence[Line]) -> AuthorScan:
    """Pull the first byline out of ``lines``.

    A bare ``by:`` marker is always dropped. The next non-blank line becomes
    the author only when it is name-shaped; otherwise it stays in the body.
    Blank lines between the marker and that line are dropped.
    """

    author: str | None = None
    awaiting = False
    kept: list[Line] = []
    for line in lines:
        text = line.text.strip()
        if not text:
            if not awaiting:
                kept.append(line)
            continue
        if awaiting:
            awaiting = False
            if is_author_name(text):
                author = author or text
                continue
        if is_byline_marker(text):
            awaiting = True
            continue
        match = INLINE_AUTHOR_RE.match(text)
        if match:
            author = author or match.group(1).strip()
            continue
        kept.append(line)
    return AuthorScan(author=author, lines=kept)


def _route(sections: Sections, mode: Mode, text: str) -> None:
    if mode is Mode.INGREDIENTS:
        sections.ingredients.append(clean_ingredient(text))
    elif mode is Mode.INSTRUCTIONS:
        sections.instructions.append(clean_instruction(text))
    elif mode is Mode.PREP:
        sections.prep.append(clean_prep(text))
        sections.instructions.append(clean_instruction(text))
    else:
        sections.notes.append(text)


def split_explicit(texts: Sequence[str]) -> Sections:
    """Route lines by the most recent section header.

    Lines before the first header are notes, except that a chunk opening
    with an instructions header and lacking an ingredients header keeps its
    ingredient-shaped preamble lines as ingredients.
    """

    sections = Sections(explicit=True)
    headers = [mode for mode in map(header_mode, texts) if mode is not None]
    implicit_ingredients = headers[0] is Mode.INSTRUCTIONS and Mode.INGREDIENTS not in headers
    mode = Mode.UNKNOWN
    for text, next_mode in zip(texts, map(header_mode, texts)):
        if next_mode is not None:
            mode = next_mode
            continue
        if mode is Mode.UNKNOWN and implicit_ingredients and is_ingredient_line(text):
            sections.ingredients.append(clean_ingredient(text))
            continue
        _route(sections, mode, text)
    return sections


def _opening_mode(texts: Sequence[str]) -> Mode:
    sample = texts[:DENSITY_SAMPLE_SIZE]
    ingredient_count = sum(1 for text in sample if looks_like_ingredient(text))
    instruction_count = sum(1 for text in sample if looks_like_instruction(text))
    if ingredient_count > 0 and ingredient_count >= instruction_count:
        return Mode.INGREDIENTS
    return Mode.UNKNOWN


def _density_pass(texts: Sequence[str]) -> Sections:
    sections = Sections()
    mode = _opening_mode(texts)
    ingredient_count = 0
    for text in texts:
        ingredient_like = looks_like_ingredient(text)
        instruction_like = looks_like_instruction(text) or reads_as_instruction(text)
        if mode is Mode.UNKNOWN:
            if ingredient_like and not instruction_like:
                mode = Mode.INGREDIENTS
            elif instruction_like:
                mode = Mode.INSTRUCTIONS
            else:
                continue
        elif (
            mode is Mode.INGREDIENTS
            and instruction_like
            and ingredient_count >= MIN_INGREDIENTS_BEFORE_SWITCH
        ):
            mode = Mode.INSTRUCTIONS
        if mode is Mode.INGREDIENTS:
            ingredient_count += 1
        _route(sections, mode, text)
    return sections


def _strict_density_pass(texts: Sequence[str]) -> Sections:
    """Treat the chunk as ingredients until the first plain instruction line."""

    sections = Sections()
    mode = Mode.INGREDIENTS
    for text in texts:
        if mode is Mode.INGREDIENTS and not looks_like_ingredient(text):
            if looks_like_instruction(text) or reads_as_instruction(text):
                mode = Mode.INSTRUCTIONS
        _route(sections, mode, text)
    return sections


def split_by_density(texts: Sequence[str]) -> Sections:
    sections = _density_pass(texts)
    if not sections.ingredients and len(texts) > 1:
        logger.debug("No ingredients found on first pass; re-running stricter walk")
        sections = _strict_density_pass(texts)
    return sections


def repair_tail(sections: Sections) -> None:
    if sections.instructions:
        return
    if len(sections.ingredients) > 1 and reads_as_instruction(sections.ingredients[-1]):
        sections.instructions.append(clean_instruction(sections.ingredients.pop()))
    if not sections.instructions and len(sections.ingredients) == 1:
        sections.instructions.append(sections.ingredients[0])


def split_sections(lines: Sequence[Line]) -> Sections:
    texts = [line.text.strip() for line in lines if line.text.strip()]
    if any(header_mode(text) is not None for text in texts):
        sections = split_explicit(texts)
    else:
        sections = split_by_density(texts)
    repair_tail(sections)
    return sections


def normalize_candidate(segment: str) -> str | None:
    candidate = DETERMINER_RE.sub("", segment.strip().rstrip(".!?").strip()).strip()
    candidate = CANDIDATE_QUANTITY_RE.sub("", candidate).strip()
    if not candidate or any(char.isdigit() for char in candidate):
        return None
    # "stir", "serve" and friends split off after "and"
    if IMPERATIVE_RE.match(candidate):
        return None
    words = candidate.split()
    if len(words) > MAX_CANDIDATE_WORDS:
        return None
    if words[-1].lower() in TOOL_WORDS:
        return None
    return " ".join(words)


def noun_phrases(instruction: str) -> list[str]:
    remainder = IMPERATIVE_RE.sub("", clean_instruction(clean_ingredient(instruction)), count=1).strip()
    remainder = ADVERB_RE.sub("", remainder).strip()
    if not remainder:
        return []
    phrases: list[str] = []
    for segment in PHRASE_SPLIT_RE.split(remainder):
        candidate = normalize_candidate(segment)
        if candidate:
            phrases.append(candidate)
    return phrases


def infer_ingredients(instructions: Sequence[str]) -> list[str]:
    """Recover an ingredient list from imperative steps such as "Add flour and sugar"."""

    imperative = [line for line in instructions if is_imperative_line(line)]
    if len(imperative) < MIN_IMPERATIVE_LINES:
        return []
    seen: set[str] = set()
    inferred: list[str] = []
    for line in imperative:
        for phrase in noun_phrases(line):
            key = phrase.lower()
            if key in seen:
                continue
            seen.add(key)
            inferred.append(phrase)
    if len(inferred) < MIN_INFERRED_INGREDIENTS:
        return []
    return inferred


def extract(
    chunk: Chunk,
    lines: Sequence[Line],
    *,
    prep_mode: PrepExtractionMode = DEFAULT_PREP_MODE,
) -> IntermediateRecipe:
    title, content = isolate_title(chunk, lines)
    byline = extract_author(content)
    sections = split_sections(byline.lines)

    inferred = False
    if not sections.ingredients and not sections.explicit:
        candidates = infer_ingredients(sections.instructions)
        if candidates:
            logger.debug("Inferred %d ingredients for %r", len(candidates), title)
            sections.ingredients.extend(candidates)
            inferred = True

    ingredient_prep = collect_ingredient_prep(sections.ingredients, prep_mode)
    return IntermediateRecipe(
        title=title,
        ingredients=sections.ingredients,
        instructions=sections.instructions,
        source=RecipeSource(
            start_line=chunk.start_line,
            end_line=chunk.end_line,
            evidence=chunk.evidence,
            author=byline.author,
        ),
        prep_section=sections.prep or None,
        ingredient_prep=ingredient_prep or None,
        notes=sections.notes,
        ingredients_inferred=inferred,
    )
