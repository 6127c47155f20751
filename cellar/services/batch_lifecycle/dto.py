from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from ...models import Batch, Lot, VesselAllocation
from ...utils.timezone_utils import TimezoneUtils
from ..errors import TransitionValidationError


def _optional_float(payload: Mapping[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise TransitionValidationError(f"{key} must be a number", details={key: value})


def _optional_datetime(payload: Mapping[str, Any], key: str) -> Optional[datetime]:
    value = payload.get(key)
    if isinstance(value, datetime):
        return TimezoneUtils.to_storage(value)
    try:
        return TimezoneUtils.parse_iso(value)
    except ValueError:
        raise TransitionValidationError(f"{key} must be an ISO-8601 timestamp", details={key: value})


@dataclass(slots=True)
class TransitionParams:
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    original_gravity: Optional[float] = None
    final_gravity: Optional[float] = None
    temperature: Optional[float] = None
    notes: Optional[str] = None
    actor_id: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, actor_id: Optional[int] = None) -> "TransitionParams":
        notes = payload.get("notes")
        return cls(
            planned_start=_optional_datetime(payload, "planned_start"),
            planned_end=_optional_datetime(payload, "planned_end"),
            original_gravity=_optional_float(payload, "original_gravity"),
            final_gravity=_optional_float(payload, "final_gravity"),
            temperature=_optional_float(payload, "temperature"),
            notes=str(notes).strip() if notes else None,
            actor_id=actor_id,
        )


@dataclass(slots=True)
class SecondaryOutcome:
    """Result of a best-effort write performed after the primary commit."""
    name: str
    ok: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "ok": self.ok, "reason": self.reason}


@dataclass(slots=True)
class TransitionResult:
    batch: Batch
    scenario: str
    siblings: list[Batch] = field(default_factory=list)
    lot: Optional[Lot] = None
    allocations: list[VesselAllocation] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    secondary: list[SecondaryOutcome] = field(default_factory=list)

    @property
    def batches(self) -> list[Batch]:
        return [self.batch, *self.siblings]

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario,
            "batch": self.batch.to_dict(),
            "siblings": [sibling.to_dict() for sibling in self.siblings],
            "lot": self.lot.to_dict() if self.lot else None,
            "allocations": [allocation.to_dict() for allocation in self.allocations],
            "warnings": list(self.warnings),
            "secondary": [outcome.to_dict() for outcome in self.secondary],
        }
