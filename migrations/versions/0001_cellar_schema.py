"""0001 cellar schema: tenants, vessels, batches, lots, allocation ledger

Revision ID: 0001_cellar_schema
Revises:
Create Date: 2026-03-02 09:14:37.402118

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_cellar_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    is_pg = bind.dialect.name == "postgresql"

    op.create_table(
        'organization',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=256), nullable=False, unique=True),
        sa.Column('first_name', sa.String(length=64), nullable=True),
        sa.Column('last_name', sa.String(length=64), nullable=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'recipe',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('style', sa.String(length=64), nullable=True),
        sa.Column('yeast_strain', sa.String(length=64), nullable=True),
        sa.Column('target_volume', sa.Float(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'name', name='uq_recipe_org_name'),
    )
    op.create_index('ix_recipe_organization_id', 'recipe', ['organization_id'])

    op.create_table(
        'lot',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('lot_code', sa.String(length=32), nullable=False),
        sa.Column('phase', sa.String(length=32), nullable=False),
        sa.Column('volume', sa.Float(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'lot_code', name='uq_lot_org_code'),
    )
    op.create_index('ix_lot_organization_id', 'lot', ['organization_id'])

    op.create_table(
        'batch',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('code', sa.String(length=48), nullable=False),
        sa.Column('recipe_id', sa.Integer(), sa.ForeignKey('recipe.id'), nullable=False),
        sa.Column('volume', sa.Float(), nullable=False),
        sa.Column('phase', sa.String(length=32), nullable=False, server_default='PLANNED'),
        sa.Column('original_gravity', sa.Float(), nullable=True),
        sa.Column('final_gravity', sa.Float(), nullable=True),
        sa.Column('abv', sa.Float(), nullable=True),
        sa.Column('temperature', sa.Float(), nullable=True),
        sa.Column('parent_batch_id', sa.Integer(), sa.ForeignKey('batch.id'), nullable=True),
        sa.Column('lot_id', sa.Integer(), sa.ForeignKey('lot.id'), nullable=True),
        sa.Column('fermentation_started_at', sa.DateTime(), nullable=True),
        sa.Column('conditioning_started_at', sa.DateTime(), nullable=True),
        sa.Column('packaged_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'code', name='uq_batch_org_code'),
        sa.CheckConstraint('volume > 0', name='ck_batch_volume_positive'),
    )
    op.create_index('ix_batch_organization_id', 'batch', ['organization_id'])
    op.create_index('ix_batch_parent_batch_id', 'batch', ['parent_batch_id'])
    op.create_index('ix_batch_lot_id', 'batch', ['lot_id'])
    op.create_index('ix_batch_org_phase', 'batch', ['organization_id', 'phase'])

    # current_batch_id / current_allocation_id FKs are added below; they close a cycle
    op.create_table(
        'vessel',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('vessel_type', sa.String(length=16), nullable=False, server_default='FERMENTER'),
        sa.Column('capacity', sa.Float(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='AVAILABLE'),
        sa.Column('current_batch_id', sa.Integer(), nullable=True),
        sa.Column('current_allocation_id', sa.Integer(), nullable=True),
        sa.Column('last_reserved_at', sa.DateTime(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'name', name='uq_vessel_org_name'),
        sa.CheckConstraint('capacity > 0', name='ck_vessel_capacity_positive'),
    )
    op.create_index('ix_vessel_organization_id', 'vessel', ['organization_id'])
    op.create_index('ix_vessel_org_status', 'vessel', ['organization_id', 'status'])

    op.create_table(
        'vessel_allocation',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('vessel_id', sa.Integer(), sa.ForeignKey('vessel.id'), nullable=False),
        sa.Column('batch_id', sa.Integer(), sa.ForeignKey('batch.id'), nullable=False),
        sa.Column('phase', sa.String(length=32), nullable=False),
        sa.Column('planned_start', sa.DateTime(), nullable=False),
        sa.Column('planned_end', sa.DateTime(), nullable=False),
        sa.Column('actual_start', sa.DateTime(), nullable=True),
        sa.Column('actual_end', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PLANNED'),
        sa.Column('volume', sa.Float(), nullable=True),
        sa.Column('phase_code', sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('planned_end > planned_start', name='ck_vessel_allocation_window'),
    )
    op.create_index('ix_vessel_allocation_organization_id', 'vessel_allocation', ['organization_id'])
    op.create_index('ix_vessel_allocation_vessel_id', 'vessel_allocation', ['vessel_id'])
    op.create_index('ix_vessel_allocation_batch_id', 'vessel_allocation', ['batch_id'])
    op.create_index(
        'ix_vessel_allocation_vessel_window',
        'vessel_allocation',
        ['vessel_id', 'status', 'planned_start', 'planned_end'],
    )
    op.create_index(
        'uq_vessel_allocation_one_active',
        'vessel_allocation',
        ['vessel_id'],
        unique=True,
        sqlite_where=sa.text("status = 'ACTIVE'"),
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        'timeline_event',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('occurred_at', sa.DateTime(), nullable=True),
        sa.Column('batch_id', sa.Integer(), sa.ForeignKey('batch.id'), nullable=True),
        sa.Column('lot_id', sa.Integer(), sa.ForeignKey('lot.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('correlation_id', sa.String(length=64), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
    )
    for column in ('organization_id', 'event_type', 'occurred_at', 'batch_id', 'lot_id', 'correlation_id'):
        op.create_index(f'ix_timeline_event_{column}', 'timeline_event', [column])

    # Postgres-only extras; SQLite relies on the ledger's overlap check and the partial index
    if is_pg:
        op.create_foreign_key('fk_vessel_current_batch', 'vessel', 'batch', ['current_batch_id'], ['id'])
        op.create_foreign_key(
            'fk_vessel_current_allocation', 'vessel', 'vessel_allocation', ['current_allocation_id'], ['id']
        )
        op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist;')
        op.create_exclude_constraint(
            'ex_vessel_allocation_no_overlap',
            'vessel_allocation',
            ('vessel_id', '='),
            (sa.literal_column("tsrange(planned_start, planned_end, '[)')"), '&&'),
            using='gist',
            where=sa.text("status IN ('PLANNED', 'ACTIVE')"),
        )


def downgrade():
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.drop_constraint('ex_vessel_allocation_no_overlap', 'vessel_allocation', type_='exclude')
        op.drop_constraint('fk_vessel_current_allocation', 'vessel', type_='foreignkey')
        op.drop_constraint('fk_vessel_current_batch', 'vessel', type_='foreignkey')

    op.drop_table('timeline_event')
    op.drop_table('vessel_allocation')
    op.drop_table('vessel')
    op.drop_table('batch')
    op.drop_table('lot')
    op.drop_table('recipe')
    op.drop_table('user')
    op.drop_table('organization')
