"""Schema check for emitted soustack records."""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class IngredientPrepModel(BaseModel):
    index: int = Field(..., ge=0)
    raw: str
    base: str
    prep: list[str]


class PrepBlockModel(BaseModel):
    section: list[str] | None = None
    ingredients: list[IngredientPrepModel] | None = None
    generatedAt: str | None = None


class SourceLinesModel(BaseModel):
    start: int = Field(..., ge=1)
    end: int = Field(..., ge=1)


class IngestModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    pipelineVersion: str
    sourcePath: str | None = None
    sourceLines: SourceLinesModel | None = None
    warnings: list[str] = Field(default_factory=list)


class MetadataModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    originalTitle: str | None = None
    author: str | None = None
    notes: list[str] | None = None
    ingest: IngestModel | None = None


class SoustackRecipeModel(BaseModel):
    """Lite profile contract: the six required fields plus optional blocks."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_url: str = Field(..., alias="$schema", min_length=1)
    profile: Literal["lite"]
    name: str
    stacks: dict[str, Any]
    ingredients: list[str]
    instructions: list[str]
    x_prep: PrepBlockModel | None = Field(default=None, alias="x-prep")
    metadata: MetadataModel | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


@dataclass
class ValidationResult:
    ok: bool
    errors: list[str] = field(default_factory=list)


Validator = Callable[[Mapping[str, Any]], ValidationResult]


def format_location(location: Sequence[int | str]) -> str:
    path = "$"
    for part in location:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}"
    return path


def schema_validator(recipe: Mapping[str, Any]) -> ValidationResult:
    try:
        SoustackRecipeModel.model_validate(dict(recipe))
    except ValidationError as exc:
        errors = [f"{format_location(error['loc'])} {error['msg']}" for error in exc.errors()]
        return ValidationResult(ok=False, errors=errors)
    return ValidationResult(ok=True)


_validator: Validator = schema_validator


def set_validator(validator: Validator | None) -> None:
    """Install ``validator`` for subsequent ``validate`` calls; ``None`` restores the default."""

    global _validator
    _validator = validator or schema_validator


def validate(recipe: Mapping[str, Any]) -> ValidationResult:
    result = _validator(recipe)
    if not result.ok:
        logger.debug("Validation failed for %r: %s", recipe.get("name"), "; ".join(result.errors))
    return result
