"""Transition scenarios.

Synopsis:
A scenario says how a batch lands in vessels when it changes phase. It is
built once at the request boundary and handed to the engine as a single typed
value, so the engine never re-derives the shape from optional fields.

Glossary:
- Share: One vessel plus the volume that goes into it.
- Simple: Whole batch into one vessel (or out of its vessel when packaging).
- Split: One batch across several vessels; extra shares become sibling batches.
- Blend: Anchor batch plus source batches merged into a new or existing lot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from ..errors import TransitionValidationError

MAX_SPLIT_SHARES = 26
_ENABLED_STRINGS = frozenset({"true", "1"})


@dataclass(frozen=True)
class VesselShare:
    vessel_id: int
    volume: Optional[float] = None

    def __post_init__(self):
        if self.volume is not None and self.volume <= 0:
            raise TransitionValidationError(
                f"Volume for vessel {self.vessel_id} must be positive",
                details={"vessel_id": self.vessel_id, "volume": self.volume},
            )


def _require_distinct(shares: tuple[VesselShare, ...]) -> None:
    vessel_ids = [share.vessel_id for share in shares]
    if len(set(vessel_ids)) != len(vessel_ids):
        raise TransitionValidationError("Each vessel may appear only once", details={"vessel_ids": vessel_ids})


def _require_volumes(shares: tuple[VesselShare, ...]) -> None:
    missing = [share.vessel_id for share in shares if share.volume is None]
    if missing:
        raise TransitionValidationError(
            "Every vessel of a multi-vessel transfer needs a volume",
            details={"vessel_ids": missing},
        )


@dataclass(frozen=True)
class Simple:
    """Whole batch into ``vessel_id``. ``None`` only makes sense for packaging and releases the vessel.

    ``volume`` is the measured transfer volume when it differs from the batch volume.
    """
    vessel_id: Optional[int]
    volume: Optional[float] = None

    kind = "SIMPLE"

    def __post_init__(self):
        if self.volume is None:
            return
        if self.vessel_id is None:
            raise TransitionValidationError("A volume needs a vessel", details={"volume": self.volume})
        if self.volume <= 0:
            raise TransitionValidationError(
                f"Volume for vessel {self.vessel_id} must be positive",
                details={"vessel_id": self.vessel_id, "volume": self.volume},
            )


@dataclass(frozen=True)
class Split:
    shares: tuple[VesselShare, ...]

    kind = "SPLIT"

    def __post_init__(self):
        object.__setattr__(self, "shares", tuple(self.shares))
        if len(self.shares) < 2:
            raise TransitionValidationError("A split needs at least two vessels")
        if len(self.shares) > MAX_SPLIT_SHARES:
            raise TransitionValidationError(
                f"A batch can be split into at most {MAX_SPLIT_SHARES} vessels"
            )
        _require_volumes(self.shares)
        _require_distinct(self.shares)

    @property
    def total_volume(self) -> float:
        return sum(share.volume for share in self.shares)


@dataclass(frozen=True)
class Blend:
    source_batch_ids: tuple[int, ...] = ()
    target_lot_id: Optional[int] = None
    shares: tuple[VesselShare, ...] = field(default_factory=tuple)

    kind = "BLEND"

    def __post_init__(self):
        object.__setattr__(self, "source_batch_ids", tuple(dict.fromkeys(self.source_batch_ids)))
        object.__setattr__(self, "shares", tuple(self.shares))
        if not self.source_batch_ids and self.target_lot_id is None:
            raise TransitionValidationError("A blend needs source batches or a target lot")
        if len(self.shares) > MAX_SPLIT_SHARES:
            raise TransitionValidationError(
                f"A blend can be distributed into at most {MAX_SPLIT_SHARES} vessels"
            )
        if len(self.shares) > 1:
            _require_volumes(self.shares)
        _require_distinct(self.shares)

    @property
    def is_split(self) -> bool:
        return len(self.shares) > 1


Scenario = Union[Simple, Split, Blend]


def _as_int(value: Any, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise TransitionValidationError(f"{field_name} must be an integer", details={field_name: value})


def _as_volume(value: Any, vessel_id: int) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise TransitionValidationError(
            f"Volume for vessel {vessel_id} must be a number", details={"vessel_id": vessel_id, "volume": value}
        )


def _parse_shares(payload: Mapping[str, Any]) -> list[VesselShare]:
    raw = payload.get("allocations") or []
    if not isinstance(raw, list):
        raise TransitionValidationError("allocations must be a list")
    shares = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            raise TransitionValidationError("Each allocation needs a vessel_id")
        vessel_id = _as_int(entry.get("vessel_id"), "vessel_id")
        shares.append(VesselShare(vessel_id=vessel_id, volume=_as_volume(entry.get("volume"), vessel_id)))
    if not shares and payload.get("vessel_id") not in (None, ""):
        shares.append(VesselShare(vessel_id=_as_int(payload["vessel_id"], "vessel_id")))
    return shares


def _parse_blend_with(payload: Mapping[str, Any]) -> list[int]:
    raw = payload.get("blend_with")
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        raise TransitionValidationError("blend_with must be a list of batch ids", details={"blend_with": raw})
    return [_as_int(value, "blend_with") for value in raw]


def _blending_enabled(value: Any) -> bool:
    # JSON sends a bool; form bodies send strings.
    if isinstance(value, str):
        return value.strip().lower() in _ENABLED_STRINGS
    return value is True


def scenario_from_payload(payload: Mapping[str, Any]) -> Scenario:
    """Build the scenario for a request body.

    Blend intent (``enable_blending`` with ``blend_with`` batches or a
    ``target_lot_id``) wins over multiple allocations; otherwise more than one
    allocation means a split; otherwise the transition is simple.
    """
    shares = _parse_shares(payload)
    blend_with = _parse_blend_with(payload)
    target_lot_id = payload.get("target_lot_id")
    target_lot_id = _as_int(target_lot_id, "target_lot_id") if target_lot_id not in (None, "") else None

    wants_blend = bool(blend_with) or target_lot_id is not None
    if wants_blend and not _blending_enabled(payload.get("enable_blending")):
        raise TransitionValidationError("blend_with and target_lot_id require enable_blending")

    if wants_blend:
        return Blend(source_batch_ids=tuple(blend_with), target_lot_id=target_lot_id, shares=tuple(shares))
    if len(shares) > 1:
        return Split(shares=tuple(shares))
    if shares:
        return Simple(vessel_id=shares[0].vessel_id, volume=shares[0].volume)
    return Simple(vessel_id=None)
