"""Write soustack records, the recipe index and the run report to disk."""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

RECIPES_DIRNAME = "recipes"
INDEX_FILENAME = "index.json"
REPORT_FILENAME = "report.json"
RECIPE_SUFFIX = ".soustack.json"
MAX_SLUG_LENGTH = 80
DEFAULT_SLUG = "recipe"


def slugify(text: str) -> str:
    cleaned = re.sub(r"[^a-z0-9\s-]", "", text.strip().lower())
    cleaned = re.sub(r"[\s_]+", "-", cleaned)
    cleaned = re.sub(r"-+", "-", cleaned).strip("-")
    return cleaned[:MAX_SLUG_LENGTH].rstrip("-") or DEFAULT_SLUG


def unique_slugs(names: Iterable[str]) -> list[str]:
    """Slug each name, suffixing repeats with ``-2``, ``-3`` in input order."""

    taken: set[str] = set()
    slugs: list[str] = []
    for name in names:
        base = slugify(name)
        slug = base
        counter = 2
        while slug in taken:
            slug = f"{base}-{counter}"
            counter += 1
        taken.add(slug)
        slugs.append(slug)
    return slugs


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
        fh.write("\n")


def emit(recipes: Iterable[Mapping[str, Any]], out_dir: str | Path) -> list[dict[str, str]]:
    """Write one file per recipe plus ``index.json`` and return the index entries."""

    root = Path(out_dir)
    recipe_list = list(recipes)
    recipes_dir = root / RECIPES_DIRNAME
    recipes_dir.mkdir(parents=True, exist_ok=True)

    index: list[dict[str, str]] = []
    for recipe, slug in zip(recipe_list, unique_slugs(str(r.get("name", "")) for r in recipe_list)):
        relative = f"{RECIPES_DIRNAME}/{slug}{RECIPE_SUFFIX}"
        write_json(root / relative, dict(recipe))
        index.append({"name": str(recipe.get("name", "")), "slug": slug, "path": relative})
    write_json(root / INDEX_FILENAME, index)
    logger.info("Wrote %d recipe(s) to %s", len(index), recipes_dir)
    return index


def write_report(out_dir: str | Path, report: Mapping[str, Any]) -> Path:
    path = Path(out_dir) / REPORT_FILENAME
    write_json(path, dict(report))
    return path

