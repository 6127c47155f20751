"""Post-commit writes (timeline, vessel board) must never undo a committed transition."""
import json
from datetime import timedelta

from cellar.extensions import cache, db
from cellar.models import Batch, BatchPhase, TimelineEvent, Vessel, VesselStatus
from cellar.services.batch_lifecycle import BatchLifecycleEngine, Simple, TransitionParams
from cellar.services.event_emitter import EventEmitter
from cellar.services.vessel_board import VesselBoardService
from tests.conftest import T0


def _ferment(seed, batch_id):
    return BatchLifecycleEngine.transition(
        seed.org_id, batch_id, BatchPhase.FERMENTING, Simple(seed.fv1_id),
        TransitionParams(planned_start=T0, planned_end=T0 + timedelta(days=14)),
    )


def _outcomes(result):
    return {outcome.name: outcome for outcome in result.secondary}


def test_board_failure_is_reported_not_raised(app, seed, make_batch, monkeypatch):
    def broken_publish(org_id):
        raise RuntimeError('cache unreachable')

    monkeypatch.setattr(VesselBoardService, 'publish', staticmethod(broken_publish))

    with app.app_context():
        batch_id = make_batch()

        result = _ferment(seed, batch_id)

        outcomes = _outcomes(result)
        assert outcomes['vessel_board'].ok is False
        assert outcomes['vessel_board'].reason == 'cache unreachable'
        assert outcomes['timeline'].ok is True
        assert result.to_dict()['secondary'][1] == {
            'name': 'vessel_board', 'ok': False, 'reason': 'cache unreachable',
        }

    with app.app_context():
        assert db.session.get(Batch, batch_id).phase == BatchPhase.FERMENTING
        assert db.session.get(Vessel, seed.fv1_id).status == VesselStatus.OCCUPIED


def test_timeline_failure_is_reported_not_raised(app, seed, make_batch, monkeypatch):
    def broken_record(*args, **kwargs):
        raise RuntimeError('audit table locked')

    monkeypatch.setattr(EventEmitter, 'record', staticmethod(broken_record))

    with app.app_context():
        batch_id = make_batch()

        result = _ferment(seed, batch_id)

        outcomes = _outcomes(result)
        assert outcomes['timeline'].ok is False
        assert outcomes['vessel_board'].ok is True

    with app.app_context():
        assert db.session.get(Batch, batch_id).phase == BatchPhase.FERMENTING
        assert TimelineEvent.query.count() == 0


def test_each_transition_gets_its_own_correlation_id(app, seed, make_batch):
    with app.app_context():
        pale = make_batch(recipe_id=seed.pale_id)
        ipa = make_batch(recipe_id=seed.ipa_id)
        _ferment(seed, pale)
        other = BatchLifecycleEngine.transition(
            seed.org_id, ipa, BatchPhase.FERMENTING, Simple(seed.fv2_id),
            TransitionParams(planned_start=T0, planned_end=T0 + timedelta(days=14)),
        )
        assert other.batch.id == ipa

        events = TimelineEvent.query.filter(TimelineEvent.batch_id.in_([pale, ipa])).all()

        assert len({event.correlation_id for event in events}) == 2


def test_board_is_published_after_commit(app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch(volume=500.0)
        _ferment(seed, batch_id)

        cached = json.loads(cache.get(VesselBoardService.get_cache_key(seed.org_id)))
        entry = next(item for item in cached if item['vessel_id'] == seed.fv1_id)

        assert entry['batch_id'] == batch_id
        assert entry['batch_phase'] == BatchPhase.FERMENTING
        assert entry['fill_pct'] == 50.0
        assert VesselBoardService.get_board(seed.org_id) == cached


def test_board_rebuilds_on_cache_miss(app, seed):
    with app.app_context():
        VesselBoardService.invalidate(seed.org_id)

        board = VesselBoardService.get_board(seed.org_id)

        assert [entry['name'] for entry in board] == ['BT-1', 'BT-2', 'FV-1', 'FV-2', 'FV-3', 'UT-1']
        assert cache.get(VesselBoardService.get_cache_key(seed.org_id)) is not None
