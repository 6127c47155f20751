from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now_naive, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=TimezoneUtils.utc_now_naive,
        onupdate=TimezoneUtils.utc_now_naive,
        nullable=False,
    )


class ScopedModelMixin:
    """Tenant column plus the two lookups every service goes through."""
    organization_id = db.Column(db.Integer, db.ForeignKey('organization.id'), nullable=False, index=True)

    @classmethod
    def for_organization(cls, org_id):
        return cls.query.filter_by(organization_id=org_id)

    @classmethod
    def get_scoped(cls, org_id, record_id):
        """Fetch one record by primary key, or None when it belongs to another tenant."""
        record = db.session.get(cls, record_id)
        if record is None or record.organization_id != org_id:
            return None
        return record
