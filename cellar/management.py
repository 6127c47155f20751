"""
Management commands for seeding and inspecting the cellar
"""
import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Batch, BatchPhase, Organization, Recipe, User, Vessel, VesselType
from .services.vessel_board import VesselBoardService

DEMO_ORG_NAME = "Demo Brewery"

DEMO_RECIPES = [
    # name, style, yeast strain, target volume (L)
    ("House Pale", "American Pale Ale", "US-05", 1000.0),
    ("West Coast IPA", "American IPA", "US-05", 1000.0),
    ("Dry Stout", "Irish Stout", "WLP004", 800.0),
]

DEMO_VESSELS = [
    ("FV-1", VesselType.FERMENTER, 1200.0),
    ("FV-2", VesselType.FERMENTER, 1200.0),
    ("FV-3", VesselType.FERMENTER, 2400.0),
    ("UT-1", VesselType.UNITANK, 1000.0),
    ("BT-1", VesselType.BRITE, 1200.0),
    ("BT-2", VesselType.BRITE, 2400.0),
]


def seed_demo_cellar(org_name=DEMO_ORG_NAME, timezone="UTC"):
    """Create one organization with recipes, vessels and PLANNED batches. Returns the organization."""
    org = Organization.query.filter_by(name=org_name).first()
    if org is not None:
        return org

    org = Organization(name=org_name, timezone=timezone)
    db.session.add(org)
    db.session.flush()

    db.session.add(User(
        email=f"cellar@{org_name.lower().replace(' ', '-')}.example",
        first_name="Cellar",
        last_name="Manager",
        organization_id=org.id,
    ))

    recipes = []
    for name, style, yeast, target_volume in DEMO_RECIPES:
        recipe = Recipe(
            organization_id=org.id,
            name=name,
            style=style,
            yeast_strain=yeast,
            target_volume=target_volume,
        )
        db.session.add(recipe)
        recipes.append(recipe)

    for name, vessel_type, capacity in DEMO_VESSELS:
        db.session.add(Vessel(organization_id=org.id, name=name, vessel_type=vessel_type, capacity=capacity))
    db.session.flush()

    for index, recipe in enumerate(recipes, start=1):
        db.session.add(Batch(
            organization_id=org.id,
            code=f"B-{index:04d}",
            recipe_id=recipe.id,
            volume=recipe.target_volume,
            phase=BatchPhase.PLANNED,
        ))

    db.session.commit()
    return org


@click.command('seed-cellar')
@click.option('--org-name', default=DEMO_ORG_NAME, show_default=True, help='Organization to create')
@click.option('--timezone', default='UTC', show_default=True, help='IANA timezone for the organization')
@with_appcontext
def seed_cellar_command(org_name, timezone):
    """Seed a demo organization with recipes, vessels and planned batches"""
    try:
        org = seed_demo_cellar(org_name=org_name, timezone=timezone)
        vessels = Vessel.for_organization(org.id).count()
        batches = Batch.for_organization(org.id).count()
        click.echo(f"✅ Organization {org.name} (id={org.id}): {vessels} vessels, {batches} batches")
    except Exception as e:
        db.session.rollback()
        click.echo(f'❌ Error seeding cellar: {str(e)}')
        raise


@click.command('vessel-board')
@click.argument('org_id', type=int)
@click.option('--publish', is_flag=True, help='Rebuild and overwrite the cached board')
@with_appcontext
def vessel_board_command(org_id, publish):
    """Print the vessel board for an organization"""
    if db.session.get(Organization, org_id) is None:
        raise click.ClickException(f"Organization {org_id} not found")

    entries = VesselBoardService.publish(org_id) if publish else VesselBoardService.build(org_id)
    for entry in entries:
        occupant = f"{entry.batch_code} ({entry.batch_phase})" if entry.batch_code else "-"
        fill = f"{entry.fill_pct}%" if entry.fill_pct is not None else ""
        click.echo(f"{entry.name:<8} {entry.vessel_type:<10} {entry.status:<15} {occupant:<28} {fill}")


def register_commands(app):
    """Register CLI commands"""
    app.cli.add_command(seed_cellar_command)
    app.cli.add_command(vessel_board_command)
