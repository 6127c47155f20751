from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from .extensions import db, login_manager
from .utils.api_responses import APIResponse

logger = logging.getLogger(__name__)


def configure_login_manager(app):
    """Session-cookie auth for the JSON API; a user only resolves while their organization is active."""
    login_manager.init_app(app)
    login_manager.unauthorized_handler(_unauthorized)
    login_manager.user_loader(_load_user)


def _unauthorized():
    return APIResponse.error("Authentication required", errors={"code": "unauthenticated"}, status_code=401)


def _load_user(user_id: str):
    from .models import User

    if not str(user_id).isdigit():
        return None
    try:
        user = db.session.get(User, int(user_id))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning("Could not load user %s: %s", user_id, exc)
        return None

    if user is None or not user.is_active:
        return None
    organization = user.organization
    return user if organization is not None and organization.is_active else None
