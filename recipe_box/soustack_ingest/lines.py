"""Line model and line-ending normalization."""
from __future__ import annotations

import re
from dataclasses import dataclass

LINE_BREAK_RE = re.compile(r"\r\n?|\f")


@dataclass(frozen=True)
class Line:
    n: int
    text: str


@dataclass(frozen=True)
class NormalizedText:
    full_text: str
    lines: list[Line]


def normalize(text: str) -> NormalizedText:
    normalized = LINE_BREAK_RE.sub("\n", text)
    lines = [Line(n=index, text=value) for index, value in enumerate(normalized.split("\n"), start=1)]
    return NormalizedText(full_text=normalized, lines=lines)


def slice_lines(lines: list[Line], start_line: int, end_line: int) -> list[Line]:
    return [line for line in lines if start_line <= line.n <= end_line]
