from sqlalchemy.dialects.postgresql import ExcludeConstraint

from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .db_dialect import is_postgres
from .mixins import ScopedModelMixin, TimestampMixin

_IS_PG = is_postgres()


class AllocationStatus:
    PLANNED = 'PLANNED'
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'

    ALL = (PLANNED, ACTIVE, COMPLETED, CANCELLED)
    # Only these statuses block a vessel's calendar.
    BLOCKING = (PLANNED, ACTIVE)


def _pg_only_constraints():
    if not _IS_PG:
        return ()
    return (
        ExcludeConstraint(
            ('vessel_id', '='),
            (db.literal_column("tsrange(planned_start, planned_end, '[)')"), '&&'),
            name='ex_vessel_allocation_no_overlap',
            using='gist',
            where=db.text("status IN ('PLANNED', 'ACTIVE')"),
        ),
    )


class VesselAllocation(ScopedModelMixin, TimestampMixin, db.Model):
    """Time-ranged reservation of one vessel by one batch for one phase.

    The planned window is half-open: [planned_start, planned_end).
    """
    __tablename__ = 'vessel_allocation'

    id = db.Column(db.Integer, primary_key=True)
    vessel_id = db.Column(db.Integer, db.ForeignKey('vessel.id'), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('batch.id'), nullable=False, index=True)
    phase = db.Column(db.String(32), nullable=False)
    planned_start = db.Column(db.DateTime, nullable=False)
    planned_end = db.Column(db.DateTime, nullable=False)
    actual_start = db.Column(db.DateTime, nullable=True)
    actual_end = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=AllocationStatus.PLANNED)
    volume = db.Column(db.Float, nullable=True)
    phase_code = db.Column(db.String(32), nullable=True)

    vessel = db.relationship('Vessel', foreign_keys=[vessel_id])
    batch = db.relationship('Batch', foreign_keys=[batch_id], back_populates='allocations')

    __table_args__ = (
        db.CheckConstraint('planned_end > planned_start', name='ck_vessel_allocation_window'),
        db.Index('ix_vessel_allocation_vessel_window', 'vessel_id', 'status', 'planned_start', 'planned_end'),
        db.Index(
            'uq_vessel_allocation_one_active',
            'vessel_id',
            unique=True,
            sqlite_where=db.text("status = 'ACTIVE'"),
            postgresql_where=db.text("status = 'ACTIVE'"),
        ),
    ) + _pg_only_constraints()

    @property
    def is_blocking(self):
        return self.status in AllocationStatus.BLOCKING

    def overlaps(self, start, end):
        return self.planned_start < end and self.planned_end > start

    def mark_active(self):
        self.status = AllocationStatus.ACTIVE
        self.actual_start = self.actual_start or TimezoneUtils.utc_now_naive()

    def mark_completed(self):
        self.status = AllocationStatus.COMPLETED
        self.actual_end = TimezoneUtils.utc_now_naive()

    def mark_cancelled(self):
        self.status = AllocationStatus.CANCELLED
        self.actual_end = self.actual_end or TimezoneUtils.utc_now_naive()

    def to_dict(self):
        return {
            'id': self.id,
            'vessel_id': self.vessel_id,
            'batch_id': self.batch_id,
            'phase': self.phase,
            'status': self.status,
            'volume': self.volume,
            'phase_code': self.phase_code,
            'planned_start': TimezoneUtils.format_datetime_for_api(self.planned_start),
            'planned_end': TimezoneUtils.format_datetime_for_api(self.planned_end),
            'actual_start': TimezoneUtils.format_datetime_for_api(self.actual_start),
            'actual_end': TimezoneUtils.format_datetime_for_api(self.actual_end),
        }

    def __repr__(self):
        return f'<VesselAllocation {self.id} vessel={self.vessel_id} batch={self.batch_id} {self.status}>'
