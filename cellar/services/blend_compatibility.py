from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ..models import Batch
from .errors import NotFoundError


@dataclass(slots=True)
class BlendValidation:
    compatible: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"compatible": self.compatible, "errors": list(self.errors), "warnings": list(self.warnings)}


def _distinct(values: Iterable[str | None]) -> list[str]:
    return sorted({value for value in values if value})


def load_batches(organization_id: int, batch_ids: Iterable[int]) -> list[Batch]:
    """Fetch batches in request order, raising NotFoundError for anything outside the tenant."""
    ordered_ids = list(dict.fromkeys(batch_ids))
    batches = Batch.query.filter(
        Batch.organization_id == organization_id, Batch.id.in_(ordered_ids)
    ).all()
    by_id = {batch.id: batch for batch in batches}
    for batch_id in ordered_ids:
        if batch_id not in by_id:
            raise NotFoundError("Batch", batch_id)
    return [by_id[batch_id] for batch_id in ordered_ids]


def evaluate_batches(batches: Iterable[Batch]) -> BlendValidation:
    """Apply blend rules to already loaded batches.

    Yeast strain divergence is fatal. Style and recipe-name divergence only warn.
    Batches whose recipe has no strain recorded do not take part in the strain check.
    """
    recipes = [batch.recipe for batch in batches if batch.recipe is not None]
    errors: list[str] = []
    warnings: list[str] = []

    strains = _distinct(recipe.yeast_strain for recipe in recipes)
    if len(strains) > 1:
        errors.append(f"Different yeast strains cannot be blended: {', '.join(strains)}")

    styles = _distinct(recipe.style for recipe in recipes)
    if len(styles) > 1:
        warnings.append(f"Blending different styles: {', '.join(styles)}")

    names = _distinct(recipe.name for recipe in recipes)
    if len(names) > 1:
        warnings.append(f"Blending different recipes: {', '.join(names)}")

    return BlendValidation(compatible=not errors, errors=errors, warnings=warnings)


def validate_blend(organization_id: int, batch_ids: Iterable[int]) -> BlendValidation:
    return evaluate_batches(load_batches(organization_id, batch_ids))
