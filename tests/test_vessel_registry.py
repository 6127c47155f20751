from datetime import timedelta

import pytest

from cellar.extensions import db
from cellar.models import BatchPhase, Vessel, VesselStatus
from cellar.services.batch_lifecycle import BatchLifecycleEngine, Simple, TransitionParams
from cellar.services.errors import NotFoundError, ResourceConflictError, TransitionValidationError
from cellar.services.vessel_registry import VesselRegistry
from tests.conftest import T0


def test_list_orders_by_capacity_then_name(app, seed):
    with app.app_context():
        names = [vessel.name for vessel in VesselRegistry.list_vessels(seed.org_id)]

        assert names == ['BT-2', 'UT-1', 'FV-1', 'FV-2', 'BT-1', 'FV-3']


def test_list_filters(app, seed):
    with app.app_context():
        VesselRegistry.set_status(seed.org_id, seed.fv1_id, VesselStatus.NEEDS_CLEANING)

        big = VesselRegistry.list_vessels(seed.org_id, min_capacity=1200.0)
        dirty = VesselRegistry.list_vessels(seed.org_id, status=VesselStatus.NEEDS_CLEANING)
        free = VesselRegistry.available(seed.org_id, min_capacity=1000.0)

        assert [v.name for v in big] == ['BT-1', 'FV-3']
        assert [v.name for v in dirty] == ['FV-1']
        assert [v.name for v in free] == ['FV-2', 'BT-1', 'FV-3']


def test_manual_status_changes(app, seed):
    with app.app_context():
        vessel = VesselRegistry.set_status(seed.org_id, seed.fv1_id, VesselStatus.OUT_OF_SERVICE)
        assert vessel.status == VesselStatus.OUT_OF_SERVICE

        with pytest.raises(TransitionValidationError):
            VesselRegistry.set_status(seed.org_id, seed.fv1_id, VesselStatus.OCCUPIED)
        with pytest.raises(TransitionValidationError):
            VesselRegistry.set_status(seed.org_id, seed.fv1_id, 'SPARKLING')

        VesselRegistry.set_status(seed.org_id, seed.fv1_id, VesselStatus.AVAILABLE)
        assert db.session.get(Vessel, seed.fv1_id).status == VesselStatus.AVAILABLE


def test_occupied_vessel_status_is_locked(app, seed, make_batch):
    with app.app_context():
        BatchLifecycleEngine.transition(
            seed.org_id, make_batch(), BatchPhase.FERMENTING, Simple(seed.fv1_id),
            TransitionParams(planned_start=T0, planned_end=T0 + timedelta(days=14)),
        )

        with pytest.raises(ResourceConflictError):
            VesselRegistry.set_status(seed.org_id, seed.fv1_id, VesselStatus.MAINTENANCE)


def test_occupation_history_newest_first(app, seed, make_batch):
    with app.app_context():
        first = make_batch()
        second = make_batch()
        for batch_id, start in ((first, T0), (second, T0 + timedelta(days=20))):
            BatchLifecycleEngine.transition(
                seed.org_id, batch_id, BatchPhase.FERMENTING, Simple(seed.fv1_id),
                TransitionParams(planned_start=start, planned_end=start + timedelta(days=14)),
            )
            BatchLifecycleEngine.transition(seed.org_id, batch_id, BatchPhase.PACKAGED, Simple(None))
            VesselRegistry.set_status(seed.org_id, seed.fv1_id, VesselStatus.AVAILABLE)
        BatchLifecycleEngine.plan_allocation(
            seed.org_id, make_batch(), seed.fv1_id, BatchPhase.FERMENTING,
            T0 + timedelta(days=60), T0 + timedelta(days=70),
        )
        BatchLifecycleEngine.cancel_booking(
            seed.org_id, VesselRegistry.occupation_history(seed.org_id, seed.fv1_id)[0].id
        )

        history = VesselRegistry.occupation_history(seed.org_id, seed.fv1_id)

        assert [allocation.batch_id for allocation in history] == [second, first]


def test_foreign_vessel_is_not_found(app, seed):
    with app.app_context():
        with pytest.raises(NotFoundError):
            VesselRegistry.get(seed.org_id, seed.other_id)
        with pytest.raises(NotFoundError):
            VesselRegistry.set_status(seed.org_id, seed.other_id, VesselStatus.AVAILABLE)
