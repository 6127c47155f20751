from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import ScopedModelMixin, TimestampMixin


class Lot(ScopedModelMixin, TimestampMixin, db.Model):
    """Downstream unit produced by blending; later batches may only be appended."""
    __tablename__ = 'lot'

    id = db.Column(db.Integer, primary_key=True)
    lot_code = db.Column(db.String(32), nullable=False)
    phase = db.Column(db.String(32), nullable=False)
    # Liquid currently in the lot; grows when batches join, set to the distributed total on a split.
    volume = db.Column(db.Float, nullable=False, default=0.0)

    batches = db.relationship('Batch', back_populates='lot', order_by='Batch.id')

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'lot_code', name='uq_lot_org_code'),
    )

    def to_dict(self, include_batches=True):
        data = {
            'id': self.id,
            'lot_code': self.lot_code,
            'phase': self.phase,
            'volume': self.volume,
            'created_at': TimezoneUtils.format_datetime_for_api(self.created_at),
        }
        if include_batches:
            data['batches'] = [batch.to_dict() for batch in self.batches]
        return data

    def __repr__(self):
        return f'<Lot {self.lot_code}>'
