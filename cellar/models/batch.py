from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import ScopedModelMixin, TimestampMixin

ABV_FACTOR = 131.25


class BatchPhase:
    PLANNED = 'PLANNED'
    FERMENTING = 'FERMENTING'
    CONDITIONING = 'CONDITIONING'
    PACKAGED = 'PACKAGED'
    CANCELLED = 'CANCELLED'

    ALL = (PLANNED, FERMENTING, CONDITIONING, PACKAGED, CANCELLED)
    TERMINAL = frozenset({PACKAGED, CANCELLED})
    # Legal predecessors for each reachable phase.
    PREDECESSORS = {
        FERMENTING: frozenset({PLANNED}),
        CONDITIONING: frozenset({FERMENTING}),
        PACKAGED: frozenset({FERMENTING, CONDITIONING}),
    }

    @classmethod
    def can_transition(cls, current, target):
        return current in cls.PREDECESSORS.get(target, frozenset())


class Batch(ScopedModelMixin, TimestampMixin, db.Model):
    __tablename__ = 'batch'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(48), nullable=False)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipe.id'), nullable=False)
    volume = db.Column(db.Float, nullable=False)
    phase = db.Column(db.String(32), nullable=False, default=BatchPhase.PLANNED)

    # Measurements recorded at phase boundaries
    original_gravity = db.Column(db.Float, nullable=True)
    final_gravity = db.Column(db.Float, nullable=True)
    abv = db.Column(db.Float, nullable=True)
    temperature = db.Column(db.Float, nullable=True)

    parent_batch_id = db.Column(db.Integer, db.ForeignKey('batch.id'), nullable=True, index=True)
    lot_id = db.Column(db.Integer, db.ForeignKey('lot.id'), nullable=True, index=True)

    fermentation_started_at = db.Column(db.DateTime, nullable=True)
    conditioning_started_at = db.Column(db.DateTime, nullable=True)
    packaged_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    recipe = db.relationship('Recipe')
    parent = db.relationship('Batch', remote_side=[id], backref='siblings')
    lot = db.relationship('Lot', back_populates='batches')
    allocations = db.relationship(
        'VesselAllocation',
        foreign_keys='VesselAllocation.batch_id',
        back_populates='batch',
        lazy='dynamic',
    )

    __mapper_args__ = {'version_id_col': version_id}

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'code', name='uq_batch_org_code'),
        db.CheckConstraint('volume > 0', name='ck_batch_volume_positive'),
        db.Index('ix_batch_org_phase', 'organization_id', 'phase'),
    )

    @property
    def is_terminal(self):
        return self.phase in BatchPhase.TERMINAL

    def record_measurements(self, original_gravity=None, final_gravity=None, temperature=None):
        if original_gravity is not None:
            self.original_gravity = original_gravity
        if final_gravity is not None:
            self.final_gravity = final_gravity
        if temperature is not None:
            self.temperature = temperature
        if self.original_gravity is not None and self.final_gravity is not None:
            self.abv = round((self.original_gravity - self.final_gravity) * ABV_FACTOR, 2)

    def stamp_phase(self, phase, at=None):
        at = at or TimezoneUtils.utc_now_naive()
        self.phase = phase
        if phase == BatchPhase.FERMENTING:
            self.fermentation_started_at = at
        elif phase == BatchPhase.CONDITIONING:
            self.conditioning_started_at = at
        elif phase == BatchPhase.PACKAGED:
            self.packaged_at = at
        elif phase == BatchPhase.CANCELLED:
            self.cancelled_at = at

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'recipe_id': self.recipe_id,
            'volume': self.volume,
            'phase': self.phase,
            'original_gravity': self.original_gravity,
            'final_gravity': self.final_gravity,
            'abv': self.abv,
            'temperature': self.temperature,
            'parent_batch_id': self.parent_batch_id,
            'lot_id': self.lot_id,
            'fermentation_started_at': TimezoneUtils.format_datetime_for_api(self.fermentation_started_at),
            'conditioning_started_at': TimezoneUtils.format_datetime_for_api(self.conditioning_started_at),
            'packaged_at': TimezoneUtils.format_datetime_for_api(self.packaged_at),
            'cancelled_at': TimezoneUtils.format_datetime_for_api(self.cancelled_at),
        }

    def __repr__(self):
        return f'<Batch {self.code} {self.phase}>'
