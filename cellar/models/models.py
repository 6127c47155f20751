from flask_login import UserMixin

from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class Organization(db.Model):
    """Tenant boundary: every vessel, batch and lot belongs to exactly one organization."""
    __tablename__ = 'organization'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    timezone = db.Column(db.String(64), nullable=False, default='UTC')
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now_naive)

    users = db.relationship('User', back_populates='organization', lazy='dynamic')

    def __repr__(self):
        return f'<Organization {self.id} {self.name}>'


class User(UserMixin, db.Model):
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(256), unique=True, nullable=False)
    first_name = db.Column(db.String(64))
    last_name = db.Column(db.String(64))
    organization_id = db.Column(db.Integer, db.ForeignKey('organization.id'), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now_naive)

    organization = db.relationship('Organization', back_populates='users')

    @property
    def display_name(self):
        full = ' '.join(part for part in (self.first_name, self.last_name) if part)
        return full or self.email

    def __repr__(self):
        return f'<User {self.id}>'
