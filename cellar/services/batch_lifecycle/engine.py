"""Batch lifecycle engine.

Synopsis:
Moves a batch to its next phase under a SIMPLE, SPLIT or BLEND scenario.
Every precondition (phase order, vessel status, calendar overlap, capacity,
blend compatibility) is checked before the first write; all writes of one
transition commit together or not at all. Timeline events and the vessel
board are written after the commit and can fail without undoing it.

Glossary:
- Anchor: The batch named in the request; it keeps the first vessel share.
- Participants: Anchor plus blend sources; their previous vessels are released.
- Booking: A PLANNED allocation made ahead of time for a batch and phase.
- Handover: Closing a batch's allocation while the same vessel is re-allocated to it.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ...extensions import db
from ...models import (
    AllocationStatus,
    Batch,
    BatchPhase,
    Lot,
    Organization,
    Vessel,
    VesselAllocation,
    VesselStatus,
)
from ...utils.code_generator import create_blend_lot, next_phase_lot_code, split_sibling_code
from ...utils.timezone_utils import TimezoneUtils
from ..allocation_ledger import REASON_VESSEL_STATUS, AllocationLedger, AvailabilityResult
from ..blend_compatibility import evaluate_batches, load_batches
from ..errors import (
    BatchLifecycleError,
    IncompatibleBlendError,
    InvalidPhaseTransitionError,
    NotFoundError,
    ResourceConflictError,
    TransitionValidationError,
)
from ..event_emitter import EventEmitter
from ..vessel_board import VesselBoardService
from ..vessel_registry import VesselRegistry
from .dto import SecondaryOutcome, TransitionParams, TransitionResult
from .scenarios import Blend, Scenario, Simple, Split, VesselShare

logger = logging.getLogger(__name__)

_DEFAULT_DAYS = {
    BatchPhase.FERMENTING: ("FERMENTATION_DEFAULT_DAYS", 14),
    BatchPhase.CONDITIONING: ("CONDITIONING_DEFAULT_DAYS", 14),
    BatchPhase.PACKAGED: ("PACKAGING_DEFAULT_DAYS", 1),
}
_VOLUME_TOLERANCE = 1e-9


@contextmanager
def _unit_of_work(action: str):
    """Commit once on success; roll back everything on any failure."""
    try:
        yield
        db.session.commit()
    except BatchLifecycleError:
        db.session.rollback()
        raise
    except (IntegrityError, StaleDataError) as exc:
        db.session.rollback()
        logger.warning("%s lost a concurrent write: %s", action, exc)
        raise ResourceConflictError(
            "A concurrent change touched the same vessel or batch; reload and retry"
        ) from exc
    except Exception as exc:
        db.session.rollback()
        logger.error("%s failed: %s", action, exc)
        raise


@dataclass(slots=True)
class _TransitionContext:
    organization_id: int
    target_phase: str
    start: datetime
    end: datetime
    params: TransitionParams
    phase_code: str


class BatchLifecycleEngine:
    """Validates and applies batch phase transitions."""

    # --- Transition ---
    # Purpose: Apply one phase transition under a scenario as a single unit of work.
    # Inputs: Tenant, batch id, target phase, scenario value, optional params.
    # Outputs: TransitionResult with post-commit secondary outcomes attached.
    @classmethod
    def transition(
        cls,
        organization_id: int,
        batch_id: int,
        target_phase: str,
        scenario: Scenario,
        params: Optional[TransitionParams] = None,
    ) -> TransitionResult:
        params = params or TransitionParams()
        if target_phase not in BatchPhase.PREDECESSORS:
            raise TransitionValidationError(
                f"Unknown target phase {target_phase!r}",
                details={"allowed": sorted(BatchPhase.PREDECESSORS)},
            )

        with _unit_of_work(f"Transition of batch {batch_id} to {target_phase}"):
            batch = cls._load_batch(organization_id, batch_id)
            ctx = cls._context(organization_id, target_phase, params)
            if isinstance(scenario, Blend):
                result = cls._apply_blend(ctx, batch, scenario)
            elif isinstance(scenario, Split):
                result = cls._apply_split(ctx, batch, scenario)
            elif isinstance(scenario, Simple):
                result = cls._apply_simple(ctx, batch, scenario)
            else:
                raise TransitionValidationError(f"Unsupported scenario {scenario!r}")

        result.secondary = cls._after_commit(organization_id, result, params)
        logger.info(
            "Batch %s -> %s via %s (siblings=%s, lot=%s)",
            result.batch.code, target_phase, result.scenario,
            len(result.siblings), result.lot.lot_code if result.lot else None,
        )
        return result

    # --- Cancel ---
    # Purpose: Move a non-terminal batch to CANCELLED and hand its vessel back.
    @classmethod
    def cancel(
        cls,
        organization_id: int,
        batch_id: int,
        *,
        reason: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> TransitionResult:
        params = TransitionParams(notes=f"Cancelled: {reason}" if reason else None, actor_id=actor_id)
        with _unit_of_work(f"Cancel of batch {batch_id}"):
            batch = cls._load_batch(organization_id, batch_id)
            if batch.is_terminal:
                raise InvalidPhaseTransitionError(batch.code, batch.phase, BatchPhase.CANCELLED)
            for allocation in AllocationLedger.open_allocations_for_batch(batch.id):
                AllocationLedger.cancel(allocation, release_to=VesselStatus.AVAILABLE)
            batch.stamp_phase(BatchPhase.CANCELLED)
            cls._append_note(batch, params.notes)
            result = TransitionResult(batch=batch, scenario="CANCEL")

        result.secondary = cls._after_commit(organization_id, result, params)
        logger.info("Batch %s cancelled", result.batch.code)
        return result

    # --- Bookings ---
    # Purpose: Reserve a vessel ahead of time (PLANNED) for a later phase of a batch.
    @classmethod
    def plan_allocation(
        cls,
        organization_id: int,
        batch_id: int,
        vessel_id: int,
        phase: str,
        start: datetime,
        end: datetime,
        *,
        volume: Optional[float] = None,
        actor_id: Optional[int] = None,
    ) -> VesselAllocation:
        if phase not in BatchPhase.PREDECESSORS:
            raise TransitionValidationError(f"Cannot book a vessel for phase {phase!r}")

        if volume is not None and volume <= 0:
            raise TransitionValidationError(
                f"Volume for vessel {vessel_id} must be positive",
                details={"vessel_id": vessel_id, "volume": volume},
            )

        with _unit_of_work(f"Booking of vessel {vessel_id} for batch {batch_id}"):
            batch = cls._load_batch(organization_id, batch_id)
            if batch.is_terminal:
                raise InvalidPhaseTransitionError(batch.code, batch.phase, phase)
            volume = batch.volume if volume is None else volume
            vessel = VesselRegistry.get(organization_id, vessel_id)
            cls._check_capacity(vessel, volume)
            availability = AllocationLedger.check_availability(organization_id, vessel.id, start, end)
            if not availability.available:
                cls._raise_unavailable([availability])
            allocation = AllocationLedger.reserve(
                organization_id, vessel.id, batch.id, phase, start, end,
                volume=volume, activate=False,
            )

        EventEmitter.emit(
            "allocation.planned",
            f"Vessel {vessel_id} booked for {phase}",
            allocation.to_dict(),
            organization_id=organization_id,
            batch_id=batch_id,
            user_id=actor_id,
        )
        return allocation

    @classmethod
    def cancel_booking(cls, organization_id: int, allocation_id: int) -> VesselAllocation:
        with _unit_of_work(f"Cancel of booking {allocation_id}"):
            allocation = VesselAllocation.get_scoped(organization_id, allocation_id)
            if allocation is None:
                raise NotFoundError("Allocation", allocation_id)
            if allocation.status != AllocationStatus.PLANNED:
                raise TransitionValidationError(
                    f"Only PLANNED allocations can be cancelled here; {allocation_id} is {allocation.status}"
                )
            AllocationLedger.cancel(allocation)
        return allocation

    # --- SIMPLE ---
    @classmethod
    def _apply_simple(cls, ctx: _TransitionContext, batch: Batch, scenario: Simple) -> TransitionResult:
        cls._guard_phase(batch, ctx.target_phase)
        current = cls._active_allocations([batch])
        bookings = cls._bookings_for_phase([batch], ctx.target_phase)

        if scenario.vessel_id is None:
            if ctx.target_phase != BatchPhase.PACKAGED:
                raise TransitionValidationError(f"A vessel is required to enter {ctx.target_phase}")
            cls._close_out(current, bookings, keep_vessel_ids=())
            cls._stamp(ctx, [batch])
            return TransitionResult(batch=batch, scenario=scenario.kind)

        volume = batch.volume if scenario.volume is None else scenario.volume
        if volume > batch.volume + _VOLUME_TOLERANCE:
            raise TransitionValidationError(
                f"Transfer volume ({volume}) exceeds batch volume ({batch.volume})",
                details={"batch_volume": batch.volume, "requested": volume},
            )
        vessel = VesselRegistry.get(ctx.organization_id, scenario.vessel_id)
        cls._check_capacity(vessel, volume)
        availability = AllocationLedger.check_availability(
            ctx.organization_id, vessel.id, ctx.start, ctx.end,
            exclude_allocation_ids=cls._ids(current, bookings),
        )
        if not availability.available:
            cls._raise_unavailable([availability])

        booking = next((b for b in bookings if b.vessel_id == vessel.id), None)
        cls._close_out(current, [b for b in bookings if b is not booking], keep_vessel_ids={vessel.id})
        batch.volume = volume
        if booking is not None:
            booking.planned_start, booking.planned_end = ctx.start, ctx.end
            booking.volume = volume
            booking.phase_code = ctx.phase_code
            allocation = AllocationLedger.activate(ctx.organization_id, booking)
        else:
            allocation = cls._reserve(ctx, batch, VesselShare(vessel.id, batch.volume))

        cls._stamp(ctx, [batch])
        return TransitionResult(batch=batch, scenario=scenario.kind, allocations=[allocation])

    # --- SPLIT ---
    @classmethod
    def _apply_split(cls, ctx: _TransitionContext, batch: Batch, scenario: Split) -> TransitionResult:
        cls._guard_phase(batch, ctx.target_phase)
        if batch.parent_batch_id is not None:
            raise TransitionValidationError(
                f"Batch {batch.code} came from a split and cannot be split again",
                details={"parent_batch_id": batch.parent_batch_id},
            )
        if scenario.total_volume > batch.volume + _VOLUME_TOLERANCE:
            raise TransitionValidationError(
                f"Split volumes ({scenario.total_volume}) exceed batch volume ({batch.volume})",
                details={"batch_volume": batch.volume, "requested": scenario.total_volume},
            )

        allocations, siblings = cls._distribute(ctx, batch, scenario.shares, participants=[batch])
        cls._stamp(ctx, [batch, *siblings])
        return TransitionResult(
            batch=batch, scenario=scenario.kind, siblings=siblings, allocations=allocations,
        )

    # --- BLEND ---
    @classmethod
    def _apply_blend(cls, ctx: _TransitionContext, anchor: Batch, scenario: Blend) -> TransitionResult:
        org_id = ctx.organization_id
        cls._guard_phase(anchor, ctx.target_phase)
        sources = [b for b in load_batches(org_id, scenario.source_batch_ids) if b.id != anchor.id]
        for source in sources:
            cls._guard_phase(source, ctx.target_phase)

        lot: Optional[Lot] = None
        if scenario.target_lot_id is not None:
            lot = Lot.get_scoped(org_id, scenario.target_lot_id)
            if lot is None:
                raise NotFoundError("Lot", scenario.target_lot_id)

        participants = [anchor, *sources]
        participant_ids = {b.id for b in participants}
        for batch in participants:
            if batch.lot_id is not None and (lot is None or batch.lot_id != lot.id):
                raise TransitionValidationError(
                    f"Batch {batch.code} already belongs to lot {batch.lot_id}",
                    details={"batch_id": batch.id, "lot_id": batch.lot_id},
                )
        if lot is None and not scenario.shares:
            raise TransitionValidationError("A new lot needs a vessel allocation")

        members = [b for b in lot.batches if b.id not in participant_ids] if lot else []
        validation = evaluate_batches([*participants, *members])
        if not validation.compatible:
            raise IncompatibleBlendError(validation.errors, validation.warnings)

        current = cls._active_allocations(participants)
        # An allocation's volume covers everything poured into it.
        held = {allocation.batch_id for allocation in current}
        blended = sum(cls._allocation_volume(allocation) for allocation in current) + sum(
            b.volume for b in participants if b.id not in held
        )
        # Lot members re-entering their own lot are already counted in its volume.
        incoming = sum(b.volume for b in participants if lot is None or b.lot_id != lot.id)
        bookings = cls._bookings_for_phase(participants, ctx.target_phase)
        allocations: list[VesselAllocation] = []
        siblings: list[Batch] = []
        lot_volume_added = incoming

        if scenario.is_split:
            distributed = sum(share.volume for share in scenario.shares)
            if distributed > blended + _VOLUME_TOLERANCE:
                raise TransitionValidationError(
                    f"Distributed volume ({distributed}) exceeds blended volume ({blended})",
                    details={"blended_volume": blended, "requested": distributed},
                )
            allocations, siblings = cls._distribute(ctx, anchor, scenario.shares, participants=participants)
            lot_volume_added = incoming - (blended - distributed)
        elif scenario.shares:
            share = scenario.shares[0]
            vessel = VesselRegistry.get(org_id, share.vessel_id)
            lot_allocation = cls._lot_allocation_in(vessel, lot, ctx.target_phase)
            if lot_allocation is not None:
                # Pouring into the vessel that already holds the lot: top up, no new allocation.
                existing = cls._allocation_volume(lot_allocation)
                cls._check_capacity(vessel, existing + incoming)
                cls._close_out(current, bookings, keep_vessel_ids=())
                lot_allocation.volume = existing + incoming
                allocations = [lot_allocation]
            else:
                cls._check_capacity(vessel, blended)
                availability = AllocationLedger.check_availability(
                    org_id, vessel.id, ctx.start, ctx.end,
                    exclude_allocation_ids=cls._ids(current, bookings),
                )
                if not availability.available:
                    cls._raise_unavailable([availability])
                cls._close_out(current, bookings, keep_vessel_ids={vessel.id})
                allocations = [cls._reserve(ctx, anchor, VesselShare(vessel.id, blended))]
        else:
            cls._close_out(current, bookings, keep_vessel_ids=())

        db.session.flush()
        if lot is None:
            lot = create_blend_lot(org_id, ctx.target_phase)
        lot.volume = (lot.volume or 0.0) + lot_volume_added
        lot.phase = ctx.target_phase
        for batch in [*participants, *siblings]:
            batch.lot_id = lot.id
        cls._stamp(ctx, [*participants, *siblings])

        return TransitionResult(
            batch=anchor,
            scenario=scenario.kind,
            siblings=siblings,
            lot=lot,
            allocations=allocations,
            warnings=list(validation.warnings),
        )

    # --- Distribution ---
    # Purpose: Put the anchor in the first share and spawn one sibling per further share.
    @classmethod
    def _distribute(
        cls,
        ctx: _TransitionContext,
        anchor: Batch,
        shares: Iterable[VesselShare],
        *,
        participants: list[Batch],
    ) -> tuple[list[VesselAllocation], list[Batch]]:
        shares = list(shares)
        vessels = [VesselRegistry.get(ctx.organization_id, share.vessel_id) for share in shares]
        for vessel, share in zip(vessels, shares):
            cls._check_capacity(vessel, share.volume)

        current = cls._active_allocations(participants)
        bookings = cls._bookings_for_phase(participants, ctx.target_phase)
        multi = AllocationLedger.check_multiple(
            ctx.organization_id,
            [vessel.id for vessel in vessels],
            ctx.start,
            ctx.end,
            exclude_allocation_ids=cls._ids(current, bookings),
        )
        if not multi.all_available:
            cls._raise_unavailable(multi.unavailable)

        cls._close_out(current, bookings, keep_vessel_ids={vessel.id for vessel in vessels})

        existing_siblings = Batch.query.filter_by(parent_batch_id=anchor.id).count()
        anchor.volume = shares[0].volume
        allocations = [cls._reserve(ctx, anchor, shares[0])]
        siblings = []
        for index, share in enumerate(shares[1:], start=existing_siblings + 1):
            sibling = cls._spawn_sibling(anchor, split_sibling_code(anchor.code, index), share.volume)
            db.session.add(sibling)
            db.session.flush()
            allocations.append(cls._reserve(ctx, sibling, share))
            siblings.append(sibling)
        return allocations, siblings

    @staticmethod
    def _spawn_sibling(parent: Batch, code: str, volume: float) -> Batch:
        return Batch(
            organization_id=parent.organization_id,
            code=code,
            recipe_id=parent.recipe_id,
            volume=volume,
            phase=parent.phase,
            original_gravity=parent.original_gravity,
            final_gravity=parent.final_gravity,
            abv=parent.abv,
            temperature=parent.temperature,
            parent_batch_id=parent.id,
            lot_id=parent.lot_id,
            fermentation_started_at=parent.fermentation_started_at,
            conditioning_started_at=parent.conditioning_started_at,
        )

    # --- Helpers ---
    @staticmethod
    def _load_batch(organization_id: int, batch_id: int) -> Batch:
        batch = Batch.get_scoped(organization_id, batch_id)
        if batch is None:
            raise NotFoundError("Batch", batch_id)
        return batch

    @staticmethod
    def _context(organization_id: int, target_phase: str, params: TransitionParams) -> _TransitionContext:
        start = params.planned_start or TimezoneUtils.utc_now_naive()
        if params.planned_end is not None:
            end = params.planned_end
        else:
            key, default_days = _DEFAULT_DAYS[target_phase]
            end = start + timedelta(days=current_app.config.get(key, default_days))

        org = db.session.get(Organization, organization_id)
        tz_name = org.timezone if org else current_app.config.get("DEFAULT_ORG_TIMEZONE", "UTC")
        return _TransitionContext(
            organization_id=organization_id,
            target_phase=target_phase,
            start=start,
            end=end,
            params=params,
            phase_code=next_phase_lot_code(target_phase, TimezoneUtils.local_date(tz_name, start)),
        )

    @staticmethod
    def _guard_phase(batch: Batch, target_phase: str) -> None:
        if not BatchPhase.can_transition(batch.phase, target_phase):
            raise InvalidPhaseTransitionError(batch.code, batch.phase, target_phase)

    @staticmethod
    def _check_capacity(vessel: Vessel, volume: Optional[float]) -> None:
        if volume is not None and volume > vessel.capacity + _VOLUME_TOLERANCE:
            raise TransitionValidationError(
                f"Volume {volume} exceeds capacity {vessel.capacity} of vessel {vessel.name}",
                details={"vessel_id": vessel.id, "capacity": vessel.capacity, "volume": volume},
            )

    @staticmethod
    def _raise_unavailable(results: Iterable[AvailabilityResult]) -> None:
        results = list(results)
        parts = []
        for result in results:
            if result.reason == REASON_VESSEL_STATUS:
                parts.append(f"vessel {result.vessel_id} is {result.vessel_status}")
            elif result.conflict is not None:
                parts.append(
                    f"vessel {result.vessel_id} is booked by batch {result.conflict.batch_id} "
                    f"(allocation {result.conflict.allocation_id})"
                )
        raise ResourceConflictError(
            "Vessel unavailable: " + "; ".join(parts),
            availability=[result.to_dict() for result in results],
        )

    @staticmethod
    def _active_allocations(batches: Iterable[Batch]) -> list[VesselAllocation]:
        allocations = []
        for batch in batches:
            allocation = AllocationLedger.active_allocation_for_batch(batch.id)
            if allocation is not None:
                allocations.append(allocation)
        return allocations

    @staticmethod
    def _bookings_for_phase(batches: Iterable[Batch], phase: str) -> list[VesselAllocation]:
        batch_ids = [batch.id for batch in batches]
        return (
            VesselAllocation.query.filter(
                VesselAllocation.batch_id.in_(batch_ids),
                VesselAllocation.status == AllocationStatus.PLANNED,
                VesselAllocation.phase == phase,
            )
            .order_by(VesselAllocation.id.asc())
            .all()
        )

    @staticmethod
    def _ids(*groups: Iterable[VesselAllocation]) -> set[int]:
        return {allocation.id for group in groups for allocation in group}

    @staticmethod
    def _close_out(
        active: Iterable[VesselAllocation],
        bookings: Iterable[VesselAllocation],
        *,
        keep_vessel_ids: Iterable[int],
    ) -> None:
        keep = set(keep_vessel_ids)
        for allocation in active:
            release_to = None if allocation.vessel_id in keep else VesselStatus.NEEDS_CLEANING
            AllocationLedger.complete(allocation, release_to=release_to)
        for booking in bookings:
            AllocationLedger.cancel(booking)

    @staticmethod
    def _allocation_volume(allocation: VesselAllocation) -> float:
        return allocation.volume if allocation.volume is not None else allocation.batch.volume

    @staticmethod
    def _lot_allocation_in(vessel: Vessel, lot: Optional[Lot], phase: str) -> Optional[VesselAllocation]:
        """The lot's ACTIVE allocation in ``vessel`` for ``phase``, if the lot already sits there."""
        if lot is None or vessel.current_allocation_id is None:
            return None
        allocation = db.session.get(VesselAllocation, vessel.current_allocation_id)
        if allocation is None or allocation.batch is None or allocation.batch.lot_id != lot.id:
            return None
        if allocation.phase != phase:
            return None
        return allocation

    @staticmethod
    def _reserve(ctx: _TransitionContext, batch: Batch, share: VesselShare) -> VesselAllocation:
        return AllocationLedger.reserve(
            ctx.organization_id,
            share.vessel_id,
            batch.id,
            ctx.target_phase,
            ctx.start,
            ctx.end,
            volume=share.volume if share.volume is not None else batch.volume,
            phase_code=ctx.phase_code,
        )

    @classmethod
    def _stamp(cls, ctx: _TransitionContext, batches: Iterable[Batch]) -> None:
        params = ctx.params
        now = TimezoneUtils.utc_now_naive()
        for batch in batches:
            batch.stamp_phase(ctx.target_phase, at=now)
            batch.record_measurements(
                original_gravity=params.original_gravity,
                final_gravity=params.final_gravity,
                temperature=params.temperature,
            )
            cls._append_note(batch, params.notes)

    @staticmethod
    def _append_note(batch: Batch, note: Optional[str]) -> None:
        if note:
            batch.notes = f"{batch.notes}\n{note}" if batch.notes else note

    # --- After commit ---
    # Purpose: Best-effort audit and read-model writes; failures are logged and reported, never raised.
    @classmethod
    def _after_commit(
        cls, organization_id: int, result: TransitionResult, params: TransitionParams
    ) -> list[SecondaryOutcome]:
        correlation_id = str(uuid.uuid4())
        return [
            cls._run_secondary(
                "timeline", lambda: cls._record_timeline(organization_id, result, params, correlation_id)
            ),
            cls._run_secondary("vessel_board", lambda: VesselBoardService.publish(organization_id)),
        ]

    @staticmethod
    def _run_secondary(name: str, write: Callable[[], object]) -> SecondaryOutcome:
        try:
            write()
            return SecondaryOutcome(name=name, ok=True)
        except Exception as exc:
            db.session.rollback()
            logger.warning("Post-commit %s write failed: %s", name, exc)
            return SecondaryOutcome(name=name, ok=False, reason=str(exc))

    @staticmethod
    def _record_timeline(
        organization_id: int, result: TransitionResult, params: TransitionParams, correlation_id: str
    ) -> None:
        batch = result.batch
        lot_id = result.lot.id if result.lot else None
        payload = {
            "scenario": result.scenario,
            "phase": batch.phase,
            "vessel_ids": [allocation.vessel_id for allocation in result.allocations],
            "allocation_ids": [allocation.id for allocation in result.allocations],
            "sibling_codes": [sibling.code for sibling in result.siblings],
            "lot_code": result.lot.lot_code if result.lot else None,
            "warnings": list(result.warnings),
        }
        context = dict(
            organization_id=organization_id,
            user_id=params.actor_id,
            correlation_id=correlation_id,
            auto_commit=False,
        )
        EventEmitter.record(
            f"batch.{batch.phase.lower()}",
            f"Batch {batch.code} entered {batch.phase}",
            payload,
            batch_id=batch.id,
            lot_id=lot_id,
            **context,
        )
        for sibling in result.siblings:
            EventEmitter.record(
                "batch.split_created",
                f"Batch {sibling.code} split from {batch.code}",
                {"parent_batch_id": batch.id, "volume": sibling.volume},
                batch_id=sibling.id,
                lot_id=lot_id,
                **context,
            )
        if result.lot is not None:
            EventEmitter.record(
                "lot.blended",
                f"Lot {result.lot.lot_code} received batch {batch.code}",
                {"batch_ids": [b.id for b in result.batches], "warnings": list(result.warnings)},
                lot_id=lot_id,
                **context,
            )
        db.session.commit()
