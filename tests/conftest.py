"""
Pytest configuration and shared fixtures for cellar tests.
"""
import os
import tempfile
from datetime import datetime
from types import SimpleNamespace

# Models pick PostgreSQL-only constraints at import time; tests run on SQLite.
os.environ["CELLAR_FORCE_DB_DIALECT"] = "sqlite"

import pytest  # noqa: E402

from cellar import create_app  # noqa: E402
from cellar.extensions import cache, db  # noqa: E402
from cellar.models import Batch, BatchPhase, Organization, Recipe, User, Vessel, VesselType  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0)


@pytest.fixture(scope='function')
def app():
    """Create and configure a new app instance for each test."""
    db_fd, db_path = tempfile.mkstemp()

    app = create_app({
        'TESTING': True,
        'DATABASE_URL': f'sqlite:///{db_path}',
        'SECRET_KEY': 'test-secret-key',
        'LOGIN_DISABLED': False,
    })

    with app.app_context():
        db.create_all()
        cache.clear()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def seed(app):
    """One brewery with recipes and vessels, plus a second tenant for isolation checks."""
    with app.app_context():
        org = Organization(name='Test Brewery', timezone='UTC')
        other_org = Organization(name='Other Brewery', timezone='UTC')
        db.session.add_all([org, other_org])
        db.session.flush()

        user = User(email='brewer@example.com', first_name='Test', last_name='Brewer', organization_id=org.id)
        other_user = User(email='other@example.com', organization_id=other_org.id)
        db.session.add_all([user, other_user])

        pale = Recipe(organization_id=org.id, name='House Pale', style='American Pale Ale', yeast_strain='US-05')
        ipa = Recipe(organization_id=org.id, name='West Coast IPA', style='American IPA', yeast_strain='US-05')
        stout = Recipe(organization_id=org.id, name='Dry Stout', style='Irish Stout', yeast_strain='WLP004')
        other_recipe = Recipe(organization_id=other_org.id, name='Lager', style='Helles', yeast_strain='W-34/70')
        db.session.add_all([pale, ipa, stout, other_recipe])

        vessels = {
            'fv1': Vessel(organization_id=org.id, name='FV-1', vessel_type=VesselType.FERMENTER, capacity=1000.0),
            'fv2': Vessel(organization_id=org.id, name='FV-2', vessel_type=VesselType.FERMENTER, capacity=1000.0),
            'fv3': Vessel(organization_id=org.id, name='FV-3', vessel_type=VesselType.FERMENTER, capacity=2000.0),
            'ut1': Vessel(organization_id=org.id, name='UT-1', vessel_type=VesselType.UNITANK, capacity=800.0),
            'bt1': Vessel(organization_id=org.id, name='BT-1', vessel_type=VesselType.BRITE, capacity=1200.0),
            'bt2': Vessel(organization_id=org.id, name='BT-2', vessel_type=VesselType.BRITE, capacity=600.0),
            'other': Vessel(organization_id=other_org.id, name='OX-1', capacity=5000.0),
        }
        db.session.add_all(vessels.values())
        db.session.flush()

        other_batch = Batch(
            organization_id=other_org.id, code='OX-0001', recipe_id=other_recipe.id, volume=100.0,
        )
        db.session.add(other_batch)
        db.session.commit()

        return SimpleNamespace(
            org_id=org.id,
            other_org_id=other_org.id,
            user_id=user.id,
            other_user_id=other_user.id,
            pale_id=pale.id,
            ipa_id=ipa.id,
            stout_id=stout.id,
            other_batch_id=other_batch.id,
            **{f'{key}_id': vessel.id for key, vessel in vessels.items()},
        )


@pytest.fixture
def make_batch(seed):
    """Insert a batch for the seeded brewery; call inside an app context. Returns the batch id."""
    counter = iter(range(1, 10000))

    def _make(recipe_id=None, volume=500.0, phase=BatchPhase.PLANNED, code=None):
        number = next(counter)
        batch = Batch(
            organization_id=seed.org_id,
            code=code or f'B-{number:04d}',
            recipe_id=recipe_id or seed.pale_id,
            volume=volume,
            phase=phase,
        )
        db.session.add(batch)
        db.session.commit()
        return batch.id

    return _make
