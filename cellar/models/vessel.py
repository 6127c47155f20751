from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import ScopedModelMixin, TimestampMixin


class VesselStatus:
    AVAILABLE = 'AVAILABLE'
    OCCUPIED = 'OCCUPIED'
    NEEDS_CLEANING = 'NEEDS_CLEANING'
    MAINTENANCE = 'MAINTENANCE'
    OUT_OF_SERVICE = 'OUT_OF_SERVICE'

    ALL = (AVAILABLE, OCCUPIED, NEEDS_CLEANING, MAINTENANCE, OUT_OF_SERVICE)
    # No new allocation may land on a vessel in one of these states.
    UNALLOCATABLE = frozenset({NEEDS_CLEANING, MAINTENANCE, OUT_OF_SERVICE})
    # States an operator may set by hand; OCCUPIED only follows an allocation.
    MANUAL = frozenset({AVAILABLE, NEEDS_CLEANING, MAINTENANCE, OUT_OF_SERVICE})


class VesselType:
    FERMENTER = 'FERMENTER'
    BRITE = 'BRITE'
    UNITANK = 'UNITANK'

    ALL = (FERMENTER, BRITE, UNITANK)


class Vessel(ScopedModelMixin, TimestampMixin, db.Model):
    """A physical tank. Holds status and capacity; scheduling lives in the allocation ledger."""
    __tablename__ = 'vessel'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    vessel_type = db.Column(db.String(16), nullable=False, default=VesselType.FERMENTER)
    capacity = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(32), nullable=False, default=VesselStatus.AVAILABLE)

    # Denormalized occupancy pointers, written in the same transaction as the allocation row.
    current_batch_id = db.Column(db.Integer, db.ForeignKey('batch.id', use_alter=True, name='fk_vessel_current_batch'), nullable=True)
    current_allocation_id = db.Column(
        db.Integer,
        db.ForeignKey('vessel_allocation.id', use_alter=True, name='fk_vessel_current_allocation'),
        nullable=True,
    )
    last_reserved_at = db.Column(db.DateTime, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    current_batch = db.relationship('Batch', foreign_keys=[current_batch_id])

    __mapper_args__ = {'version_id_col': version_id}

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'name', name='uq_vessel_org_name'),
        db.CheckConstraint('capacity > 0', name='ck_vessel_capacity_positive'),
        db.Index('ix_vessel_org_status', 'organization_id', 'status'),
    )

    @property
    def is_allocatable(self):
        return self.status not in VesselStatus.UNALLOCATABLE

    @property
    def is_occupied(self):
        return self.status == VesselStatus.OCCUPIED

    def mark_occupied(self, allocation):
        self.status = VesselStatus.OCCUPIED
        self.current_batch_id = allocation.batch_id
        self.current_allocation_id = allocation.id
        self.last_reserved_at = TimezoneUtils.utc_now_naive()

    def mark_released(self, status=VesselStatus.NEEDS_CLEANING):
        self.status = status
        self.current_batch_id = None
        self.current_allocation_id = None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'vessel_type': self.vessel_type,
            'capacity': self.capacity,
            'status': self.status,
            'current_batch_id': self.current_batch_id,
            'current_allocation_id': self.current_allocation_id,
        }

    def __repr__(self):
        return f'<Vessel {self.id} {self.name} {self.status}>'
