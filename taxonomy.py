"""
Measurement taxonomy

A fixed tree of garment categories -> subcategories -> measurement fields.
It is shipped as a JSON reference file and loaded once per process; the
intake form, the admin dashboard and the API all read the same instance.
"""

from __future__ import annotations
import json
from functools import lru_cache
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from config import get_settings


class TaxonomyError(Exception):
    """Raised when the taxonomy file is missing or malformed."""


class MeasurementField(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    type: str = "number"
    unit: str = "in"


class Subcategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    measurements: tuple[MeasurementField, ...] = ()

    @model_validator(mode="after")
    def _unique_keys(self):
        keys = [m.key for m in self.measurements]
        if len(keys) != len(set(keys)):
            raise ValueError(f"duplicate measurement keys in subcategory {self.id!r}")
        return self

    def field_keys(self) -> tuple[str, ...]:
        return tuple(m.key for m in self.measurements)


class Category(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    subcategories: tuple[Subcategory, ...] = ()

    @model_validator(mode="after")
    def _unique_ids(self):
        ids = [s.id for s in self.subcategories]
        if len(ids) != len(set(ids)):
            raise ValueError(f"duplicate subcategory ids in category {self.id!r}")
        return self

    def subcategory(self, subcategory_id: str) -> Optional[Subcategory]:
        for sub in self.subcategories:
            if sub.id == subcategory_id:
                return sub
        return None


class Taxonomy(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int = 1
    categories: tuple[Category, ...] = ()

    @model_validator(mode="after")
    def _unique_ids(self):
        ids = [c.id for c in self.categories]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate category ids")
        return self

    def category(self, category_id: str) -> Optional[Category]:
        for cat in self.categories:
            if cat.id == category_id:
                return cat
        return None

    def subcategory(self, category_id: str, subcategory_id: str) -> Optional[Subcategory]:
        cat = self.category(category_id)
        return cat.subcategory(subcategory_id) if cat else None


def read_taxonomy(path: Path) -> Taxonomy:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise TaxonomyError(f"Cannot read taxonomy file {path}: {e}") from e
    try:
        return Taxonomy.model_validate(raw)
    except ValidationError as e:
        raise TaxonomyError(f"Invalid taxonomy file {path}: {e}") from e


@lru_cache
def load_taxonomy() -> Taxonomy:
    return read_taxonomy(get_settings().TAXONOMY_FILE)
