from datetime import timedelta

import pytest

from cellar.extensions import db
from cellar.models import AllocationStatus, Batch, BatchPhase, TimelineEvent, Vessel, VesselAllocation, VesselStatus
from cellar.services.batch_lifecycle import BatchLifecycleEngine, Simple, TransitionParams
from cellar.services.errors import (
    InvalidPhaseTransitionError,
    NotFoundError,
    ResourceConflictError,
    TransitionValidationError,
)
from tests.conftest import T0


def _params(start=T0, days=14):
    return TransitionParams(planned_start=start, planned_end=start + timedelta(days=days))


def test_cancel_fermenting_batch_frees_vessel(app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
        allocation_id = BatchLifecycleEngine.transition(
            seed.org_id, batch_id, BatchPhase.FERMENTING, Simple(seed.fv1_id), _params()
        ).allocations[0].id

        result = BatchLifecycleEngine.cancel(seed.org_id, batch_id, reason='stuck ferment', actor_id=seed.user_id)

        batch = db.session.get(Batch, batch_id)
        vessel = db.session.get(Vessel, seed.fv1_id)
        assert result.scenario == 'CANCEL'
        assert batch.phase == BatchPhase.CANCELLED
        assert batch.cancelled_at is not None
        assert batch.notes == 'Cancelled: stuck ferment'
        assert db.session.get(VesselAllocation, allocation_id).status == AllocationStatus.CANCELLED
        assert vessel.status == VesselStatus.AVAILABLE
        assert vessel.current_batch_id is None
        assert TimelineEvent.query.filter_by(batch_id=batch_id, event_type='batch.cancelled').count() == 1


def test_cancel_drops_future_bookings(app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
        booking = BatchLifecycleEngine.plan_allocation(
            seed.org_id, batch_id, seed.bt1_id, BatchPhase.CONDITIONING, T0, T0 + timedelta(days=7),
        )

        BatchLifecycleEngine.cancel(seed.org_id, batch_id)

        assert db.session.get(VesselAllocation, booking.id).status == AllocationStatus.CANCELLED


def test_terminal_batches_cannot_be_cancelled(app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
        BatchLifecycleEngine.cancel(seed.org_id, batch_id)

        with pytest.raises(InvalidPhaseTransitionError):
            BatchLifecycleEngine.cancel(seed.org_id, batch_id)


def test_booking_reserves_calendar_without_occupying(app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch(volume=700.0)

        booking = BatchLifecycleEngine.plan_allocation(
            seed.org_id, batch_id, seed.fv2_id, BatchPhase.FERMENTING, T0, T0 + timedelta(days=14),
            actor_id=seed.user_id,
        )

        vessel = db.session.get(Vessel, seed.fv2_id)
        assert booking.status == AllocationStatus.PLANNED
        assert booking.volume == 700.0
        assert vessel.status == VesselStatus.AVAILABLE
        assert vessel.current_allocation_id is None
        assert vessel.last_reserved_at is not None
        assert TimelineEvent.query.filter_by(event_type='allocation.planned', batch_id=batch_id).count() == 1

        with pytest.raises(ResourceConflictError):
            BatchLifecycleEngine.plan_allocation(
                seed.org_id, make_batch(), seed.fv2_id, BatchPhase.FERMENTING,
                T0 + timedelta(days=13), T0 + timedelta(days=20),
            )

        back_to_back = BatchLifecycleEngine.plan_allocation(
            seed.org_id, make_batch(), seed.fv2_id, BatchPhase.FERMENTING,
            T0 + timedelta(days=14), T0 + timedelta(days=20),
        )
        assert back_to_back.status == AllocationStatus.PLANNED


def test_transition_activates_matching_booking(app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
        booking = BatchLifecycleEngine.plan_allocation(
            seed.org_id, batch_id, seed.fv2_id, BatchPhase.FERMENTING, T0, T0 + timedelta(days=14),
        )

        result = BatchLifecycleEngine.transition(
            seed.org_id, batch_id, BatchPhase.FERMENTING, Simple(seed.fv2_id), _params(T0, days=12)
        )

        assert result.allocations[0].id == booking.id
        assert result.allocations[0].status == AllocationStatus.ACTIVE
        assert result.allocations[0].planned_end == T0 + timedelta(days=12)
        assert db.session.get(Vessel, seed.fv2_id).current_allocation_id == booking.id


def test_transition_elsewhere_cancels_booking(app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
        booking = BatchLifecycleEngine.plan_allocation(
            seed.org_id, batch_id, seed.fv2_id, BatchPhase.FERMENTING, T0, T0 + timedelta(days=14),
        )

        BatchLifecycleEngine.transition(seed.org_id, batch_id, BatchPhase.FERMENTING, Simple(seed.fv1_id), _params())

        assert db.session.get(VesselAllocation, booking.id).status == AllocationStatus.CANCELLED
        assert db.session.get(Vessel, seed.fv2_id).status == VesselStatus.AVAILABLE


def test_booking_rules(app, seed, make_batch):
    with app.app_context():
        with pytest.raises(TransitionValidationError):
            BatchLifecycleEngine.plan_allocation(
                seed.org_id, make_batch(), seed.fv1_id, BatchPhase.PLANNED, T0, T0 + timedelta(days=1),
            )
        with pytest.raises(TransitionValidationError):
            BatchLifecycleEngine.plan_allocation(
                seed.org_id, make_batch(volume=900.0), seed.bt2_id, BatchPhase.CONDITIONING,
                T0, T0 + timedelta(days=1),
            )


def test_booking_volume_must_be_positive(app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch(volume=400.0)

        for volume in (0, 0.0, -50.0):
            with pytest.raises(TransitionValidationError):
                BatchLifecycleEngine.plan_allocation(
                    seed.org_id, batch_id, seed.fv1_id, BatchPhase.FERMENTING,
                    T0, T0 + timedelta(days=14), volume=volume,
                )

        assert VesselAllocation.query.count() == 0
        booking = BatchLifecycleEngine.plan_allocation(
            seed.org_id, batch_id, seed.fv1_id, BatchPhase.FERMENTING, T0, T0 + timedelta(days=14), volume=350.0,
        )
        assert booking.volume == 350.0


def test_cancel_booking(app, seed, make_batch):
    with app.app_context():
        booking = BatchLifecycleEngine.plan_allocation(
            seed.org_id, make_batch(), seed.bt1_id, BatchPhase.CONDITIONING, T0, T0 + timedelta(days=7),
        )

        cancelled = BatchLifecycleEngine.cancel_booking(seed.org_id, booking.id)

        assert cancelled.status == AllocationStatus.CANCELLED
        with pytest.raises(TransitionValidationError):
            BatchLifecycleEngine.cancel_booking(seed.org_id, booking.id)
        with pytest.raises(NotFoundError):
            BatchLifecycleEngine.cancel_booking(seed.other_org_id, booking.id)
