from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import ScopedModelMixin


class TimelineEvent(ScopedModelMixin, db.Model):
    """Audit record of something that happened to a batch or lot. Written after the primary commit."""

    __tablename__ = "timeline_event"

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now_naive, index=True)

    batch_id = db.Column(db.Integer, db.ForeignKey("batch.id"), nullable=True, index=True)
    lot_id = db.Column(db.Integer, db.ForeignKey("lot.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)

    correlation_id = db.Column(db.String(64), nullable=True, index=True)
    payload = db.Column(db.JSON, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "event_type": self.event_type,
            "description": self.description,
            "batch_id": self.batch_id,
            "lot_id": self.lot_id,
            "payload": self.payload or {},
            "occurred_at": TimezoneUtils.format_datetime_for_api(self.occurred_at),
        }

    def __repr__(self):
        return f"<TimelineEvent {self.event_type} {self.id}>"
