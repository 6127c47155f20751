"""Timeline event emission helper.

Synopsis:
Persists TimelineEvent rows describing batch and lot history. Runs after the
primary transaction has committed, so a failure here never undoes a transition.

Glossary:
- Timeline event: Audit row attached to a batch and/or lot.
- Correlation id: Shared id tying together the events of one transition.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from cellar.extensions import db
from cellar.models import TimelineEvent
from cellar.utils.timezone_utils import TimezoneUtils

logger = logging.getLogger(__name__)


# --- EventEmitter ---
# Purpose: Persist timeline events for batches and lots.
# Inputs: Event type, description, tenant and entity context, JSON payload.
# Outputs: Saved TimelineEvent row (``emit`` returns None on guarded failure).
class EventEmitter:
    """Writes TimelineEvent rows; ``record`` raises, ``emit`` logs and swallows."""

    @staticmethod
    def record(
        event_type: str,
        description: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        *,
        organization_id: int,
        batch_id: Optional[int] = None,
        lot_id: Optional[int] = None,
        user_id: Optional[int] = None,
        correlation_id: Optional[str] = None,
        auto_commit: bool = True,
    ) -> TimelineEvent:
        event = TimelineEvent(
            organization_id=organization_id,
            event_type=event_type,
            description=description,
            payload=dict(payload or {}),
            batch_id=batch_id,
            lot_id=lot_id,
            user_id=user_id,
            correlation_id=correlation_id or str(uuid.uuid4()),
            occurred_at=TimezoneUtils.utc_now_naive(),
        )
        db.session.add(event)
        if auto_commit:
            db.session.commit()
        return event

    @staticmethod
    def emit(event_type: str, description: Optional[str] = None, payload: Optional[Dict[str, Any]] = None, **context) -> Optional[TimelineEvent]:
        try:
            return EventEmitter.record(event_type, description, payload, **context)
        except Exception as e:
            logger.error(f"Failed to emit timeline event {event_type}: {e}")
            db.session.rollback()
            return None

    @staticmethod
    def history(organization_id: int, *, batch_id: Optional[int] = None, lot_id: Optional[int] = None, limit: int = 50):
        query = TimelineEvent.for_organization(organization_id)
        if batch_id is not None:
            query = query.filter(TimelineEvent.batch_id == batch_id)
        if lot_id is not None:
            query = query.filter(TimelineEvent.lot_id == lot_id)
        return query.order_by(TimelineEvent.occurred_at.desc(), TimelineEvent.id.desc()).limit(limit).all()
