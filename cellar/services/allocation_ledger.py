"""Allocation ledger: time-ranged vessel reservations and overlap detection.

Synopsis:
Answers "is this vessel free for [start, end)?" for one or many vessels and
records reservations. Windows are half-open, so back-to-back allocations
([10:00, 12:00) followed by [12:00, 14:00)) never conflict. Only PLANNED and
ACTIVE rows block a calendar.

Glossary:
- Blocking allocation: A PLANNED or ACTIVE allocation whose window overlaps the request.
- Unallocatable status: Vessel state that refuses every new allocation regardless of windows.
- Exclusion: An allocation id ignored during the check, used when a batch stays in its vessel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from ..extensions import db
from ..models import AllocationStatus, Vessel, VesselAllocation, VesselStatus
from ..utils.timezone_utils import TimezoneUtils
from .errors import ResourceConflictError, TransitionValidationError
from .vessel_registry import VesselRegistry

logger = logging.getLogger(__name__)

REASON_VESSEL_STATUS = "VESSEL_STATUS"
REASON_CONFLICTING_ALLOCATION = "CONFLICTING_ALLOCATION"


@dataclass(frozen=True)
class AllocationConflict:
    allocation_id: int
    batch_id: int
    phase: str
    planned_start: datetime
    planned_end: datetime
    status: str

    @classmethod
    def from_allocation(cls, allocation: VesselAllocation) -> "AllocationConflict":
        return cls(
            allocation_id=allocation.id,
            batch_id=allocation.batch_id,
            phase=allocation.phase,
            planned_start=allocation.planned_start,
            planned_end=allocation.planned_end,
            status=allocation.status,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "allocation_id": self.allocation_id,
            "batch_id": self.batch_id,
            "phase": self.phase,
            "planned_start": TimezoneUtils.format_datetime_for_api(self.planned_start),
            "planned_end": TimezoneUtils.format_datetime_for_api(self.planned_end),
            "status": self.status,
        }


@dataclass(frozen=True)
class AvailabilityResult:
    vessel_id: int
    available: bool
    reason: Optional[str] = None
    vessel_status: Optional[str] = None
    conflict: Optional[AllocationConflict] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "vessel_id": self.vessel_id,
            "available": self.available,
            "reason": self.reason,
            "vessel_status": self.vessel_status,
            "conflict": self.conflict.to_dict() if self.conflict else None,
        }


@dataclass(frozen=True)
class MultiAvailability:
    all_available: bool
    per_vessel: dict[int, AvailabilityResult] = field(default_factory=dict)

    @property
    def unavailable(self) -> list[AvailabilityResult]:
        return [result for result in self.per_vessel.values() if not result.available]

    def to_dict(self) -> dict[str, Any]:
        return {
            "all_available": self.all_available,
            "per_vessel": {str(vessel_id): result.to_dict() for vessel_id, result in self.per_vessel.items()},
        }


def _excluded(exclude_allocation_id: Optional[int], exclude_allocation_ids: Iterable[int]) -> frozenset[int]:
    ids = set(exclude_allocation_ids or ())
    if exclude_allocation_id is not None:
        ids.add(exclude_allocation_id)
    return frozenset(ids)


def _validate_window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    if start is None or end is None:
        raise TransitionValidationError("Both start and end are required")
    start = TimezoneUtils.to_storage(start)
    end = TimezoneUtils.to_storage(end)
    if end <= start:
        raise TransitionValidationError(
            "Planned end must be after planned start",
            details={"planned_start": start.isoformat(), "planned_end": end.isoformat()},
        )
    return start, end


class AllocationLedger:
    """Reservation bookkeeping for vessels. Reads are side-effect free."""

    # --- Availability ---
    # Purpose: Decide whether one vessel can take a new allocation for [start, end).
    @staticmethod
    def check_availability(
        organization_id: int,
        vessel_id: int,
        start: datetime,
        end: datetime,
        exclude_allocation_id: Optional[int] = None,
        *,
        exclude_allocation_ids: Iterable[int] = (),
    ) -> AvailabilityResult:
        start, end = _validate_window(start, end)
        vessel = VesselRegistry.get(organization_id, vessel_id)
        excluded = _excluded(exclude_allocation_id, exclude_allocation_ids)
        return AllocationLedger._evaluate(vessel, start, end, excluded)

    @staticmethod
    def _evaluate(
        vessel: Vessel,
        start: datetime,
        end: datetime,
        excluded: frozenset[int],
    ) -> AvailabilityResult:
        if not vessel.is_allocatable:
            return AvailabilityResult(
                vessel_id=vessel.id,
                available=False,
                reason=REASON_VESSEL_STATUS,
                vessel_status=vessel.status,
            )

        query = VesselAllocation.query.filter(
            VesselAllocation.vessel_id == vessel.id,
            VesselAllocation.status.in_(AllocationStatus.BLOCKING),
            VesselAllocation.planned_start < end,
            VesselAllocation.planned_end > start,
        )
        if excluded:
            query = query.filter(VesselAllocation.id.notin_(excluded))
        blocking = query.order_by(VesselAllocation.planned_start.asc()).first()

        if blocking is not None:
            return AvailabilityResult(
                vessel_id=vessel.id,
                available=False,
                reason=REASON_CONFLICTING_ALLOCATION,
                vessel_status=vessel.status,
                conflict=AllocationConflict.from_allocation(blocking),
            )
        return AvailabilityResult(vessel_id=vessel.id, available=True, vessel_status=vessel.status)

    # --- Multi-vessel availability ---
    # Purpose: Evaluate every vessel of a split or blend distribution before any write.
    @staticmethod
    def check_multiple(
        organization_id: int,
        vessel_ids: Iterable[int],
        start: datetime,
        end: datetime,
        exclude_allocation_id: Optional[int] = None,
        *,
        exclude_allocation_ids: Iterable[int] = (),
    ) -> MultiAvailability:
        start, end = _validate_window(start, end)
        excluded = _excluded(exclude_allocation_id, exclude_allocation_ids)
        per_vessel: dict[int, AvailabilityResult] = {}
        for vessel_id in vessel_ids:
            vessel = VesselRegistry.get(organization_id, vessel_id)
            per_vessel[vessel_id] = AllocationLedger._evaluate(vessel, start, end, excluded)
        return MultiAvailability(
            all_available=all(result.available for result in per_vessel.values()),
            per_vessel=per_vessel,
        )

    # --- Reserve ---
    # Purpose: Record an allocation after availability was checked in the same transaction.
    # Outputs: Flushed VesselAllocation; the vessel row is always touched so concurrent
    #          reservations of one vessel collide on its version counter.
    @staticmethod
    def reserve(
        organization_id: int,
        vessel_id: int,
        batch_id: int,
        phase: str,
        start: datetime,
        end: datetime,
        *,
        volume: Optional[float] = None,
        activate: bool = True,
        phase_code: Optional[str] = None,
    ) -> VesselAllocation:
        start, end = _validate_window(start, end)
        vessel = VesselRegistry.get(organization_id, vessel_id)

        if activate and vessel.current_allocation_id is not None:
            raise ResourceConflictError(
                f"Vessel {vessel.name} is already occupied",
                availability=[{
                    "vessel_id": vessel.id,
                    "available": False,
                    "reason": REASON_CONFLICTING_ALLOCATION,
                    "current_allocation_id": vessel.current_allocation_id,
                }],
            )

        # Closing a previous ACTIVE row must reach the database before the new one,
        # otherwise the one-active-per-vessel index sees two.
        db.session.flush()

        allocation = VesselAllocation(
            organization_id=organization_id,
            vessel_id=vessel.id,
            batch_id=batch_id,
            phase=phase,
            planned_start=start,
            planned_end=end,
            volume=volume,
            phase_code=phase_code,
            status=AllocationStatus.PLANNED,
        )
        db.session.add(allocation)
        db.session.flush()

        if activate:
            allocation.mark_active()
            vessel.mark_occupied(allocation)
        else:
            vessel.last_reserved_at = TimezoneUtils.utc_now_naive()

        logger.debug(
            "Reserved vessel %s for batch %s [%s, %s) status=%s",
            vessel.id, batch_id, start, end, allocation.status,
        )
        return allocation

    @staticmethod
    def activate(organization_id: int, allocation: VesselAllocation) -> VesselAllocation:
        """Promote a PLANNED allocation once the batch physically enters the vessel."""
        if allocation.status != AllocationStatus.PLANNED:
            raise TransitionValidationError(
                f"Allocation {allocation.id} is {allocation.status}, expected PLANNED"
            )
        vessel = VesselRegistry.get(organization_id, allocation.vessel_id)
        if not vessel.is_allocatable:
            raise ResourceConflictError(
                f"Vessel {vessel.name} is {vessel.status}",
                availability=[AvailabilityResult(
                    vessel_id=vessel.id, available=False,
                    reason=REASON_VESSEL_STATUS, vessel_status=vessel.status,
                ).to_dict()],
            )
        if vessel.current_allocation_id not in (None, allocation.id):
            raise ResourceConflictError(
                f"Vessel {vessel.name} is already occupied",
                availability=[{"vessel_id": vessel.id, "current_allocation_id": vessel.current_allocation_id}],
            )
        db.session.flush()
        allocation.mark_active()
        vessel.mark_occupied(allocation)
        return allocation

    @staticmethod
    def complete(
        allocation: VesselAllocation,
        *,
        release_to: Optional[str] = VesselStatus.NEEDS_CLEANING,
    ) -> VesselAllocation:
        """Close an ACTIVE allocation.

        ``release_to=None`` is a handover: the vessel stays OCCUPIED but its
        allocation pointer is cleared so the next reservation can take it.
        """
        allocation.mark_completed()
        vessel = allocation.vessel
        if vessel.current_allocation_id == allocation.id:
            if release_to is None:
                vessel.current_allocation_id = None
            else:
                vessel.mark_released(release_to)
        return allocation

    @staticmethod
    def cancel(
        allocation: VesselAllocation,
        *,
        release_to: str = VesselStatus.AVAILABLE,
    ) -> VesselAllocation:
        was_active = allocation.status == AllocationStatus.ACTIVE
        allocation.mark_cancelled()
        vessel = allocation.vessel
        if was_active and vessel.current_allocation_id == allocation.id:
            vessel.mark_released(release_to)
        return allocation

    @staticmethod
    def active_allocation_for_batch(batch_id: int) -> Optional[VesselAllocation]:
        return VesselAllocation.query.filter_by(
            batch_id=batch_id, status=AllocationStatus.ACTIVE
        ).first()

    @staticmethod
    def open_allocations_for_batch(batch_id: int) -> list[VesselAllocation]:
        return (
            VesselAllocation.query.filter(
                VesselAllocation.batch_id == batch_id,
                VesselAllocation.status.in_(AllocationStatus.BLOCKING),
            )
            .order_by(VesselAllocation.planned_start.asc())
            .all()
        )

    @staticmethod
    def allocations_for_vessel(
        organization_id: int,
        vessel_id: int,
        statuses: Optional[Iterable[str]] = None,
    ) -> list[VesselAllocation]:
        query = VesselAllocation.query.filter(
            VesselAllocation.organization_id == organization_id,
            VesselAllocation.vessel_id == vessel_id,
        )
        if statuses:
            query = query.filter(VesselAllocation.status.in_(tuple(statuses)))
        return query.order_by(VesselAllocation.planned_start.asc()).all()
