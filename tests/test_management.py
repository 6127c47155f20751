from cellar.extensions import cache
from cellar.models import Organization
from cellar.services.vessel_board import VesselBoardService


def test_seed_cellar_is_idempotent(app, runner):
    first = runner.invoke(args=['seed-cellar', '--org-name', 'Demo Cellar'])
    second = runner.invoke(args=['seed-cellar', '--org-name', 'Demo Cellar'])

    assert first.exit_code == 0, first.output
    assert '6 vessels, 3 batches' in first.output
    assert '6 vessels, 3 batches' in second.output
    with app.app_context():
        assert Organization.query.filter_by(name='Demo Cellar').count() == 1


def test_vessel_board_command(app, runner):
    runner.invoke(args=['seed-cellar', '--org-name', 'Demo Cellar'])
    with app.app_context():
        org_id = Organization.query.filter_by(name='Demo Cellar').one().id

    result = runner.invoke(args=['vessel-board', str(org_id), '--publish'])

    assert result.exit_code == 0, result.output
    assert 'FV-1' in result.output
    assert 'AVAILABLE' in result.output
    with app.app_context():
        assert cache.get(VesselBoardService.get_cache_key(org_id)) is not None


def test_vessel_board_unknown_org(runner):
    result = runner.invoke(args=['vessel-board', '9999'])

    assert result.exit_code != 0
    assert 'Organization 9999 not found' in result.output
