from __future__ import annotations

import logging
import re
import secrets
import string
from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from cellar.extensions import db
from cellar.models import BatchPhase, Lot, Organization
from cellar.services.errors import SequenceExhaustedError, TransitionValidationError
from cellar.utils.timezone_utils import TimezoneUtils

__all__ = [
    "BLEND_PREFIX",
    "PHASE_CODE_PREFIXES",
    "next_batch_lot_code",
    "next_phase_lot_code",
    "split_sibling_code",
    "create_blend_lot",
]

logger = logging.getLogger(__name__)

BLEND_PREFIX = "BLEND"
MAX_SEQUENCE = 9999
PHASE_CODE_PREFIXES = {
    BatchPhase.FERMENTING: "FERM",
    BatchPhase.CONDITIONING: "COND",
    BatchPhase.PACKAGED: "PKG",
}
_SIBLING_LETTERS = string.ascii_uppercase


def _tenant_year(organization_id: int) -> int:
    org = db.session.get(Organization, organization_id)
    tz_name = org.timezone if org else current_app.config.get("DEFAULT_ORG_TIMEZONE", "UTC")
    return TimezoneUtils.local_date(tz_name).year


def next_batch_lot_code(organization_id: int, *, year: int | None = None) -> str:
    """
    Compute the next blend lot code for a tenant.

    Format: BLEND-{YEAR}-{SEQUENCE}
    - YEAR: calendar year in the organization's timezone
    - SEQUENCE: 4-digit, zero-padded; one past the greatest existing code for the year

    The value is read-then-write: callers must insert it under the
    (organization_id, lot_code) unique constraint and retry on violation.
    """
    year = year or _tenant_year(organization_id)
    prefix = f"{BLEND_PREFIX}-{year}-"

    latest = (
        db.session.query(Lot.lot_code)
        .filter(Lot.organization_id == organization_id, Lot.lot_code.like(f"{prefix}%"))
        .order_by(Lot.lot_code.desc())
        .first()
    )

    sequence = 1
    if latest:
        match = re.fullmatch(rf"{re.escape(prefix)}(\d{{4}})", latest[0])
        if match:
            sequence = int(match.group(1)) + 1

    if sequence > MAX_SEQUENCE:
        raise SequenceExhaustedError(f"Lot code sequence for {year} is exhausted")
    return f"{prefix}{sequence:04d}"


def next_phase_lot_code(phase: str, on_date: date | None = None) -> str:
    """Informational per-phase code, e.g. FERM-20260314-3FA9C1. Not uniqueness-constrained."""
    prefix = PHASE_CODE_PREFIXES.get(phase)
    if prefix is None:
        raise TransitionValidationError(f"No lot code prefix for phase {phase}")
    on_date = on_date or TimezoneUtils.utc_now().date()
    return f"{prefix}-{on_date:%Y%m%d}-{secrets.token_hex(3).upper()}"


def split_sibling_code(parent_code: str, index: int) -> str:
    """Code for the index-th split share; the parent implicitly keeps letter A."""
    if index < 1 or index >= len(_SIBLING_LETTERS):
        raise TransitionValidationError(
            f"A batch can be split into at most {len(_SIBLING_LETTERS)} vessels"
        )
    return f"{parent_code}-{_SIBLING_LETTERS[index]}"


def create_blend_lot(organization_id: int, phase: str, *, max_retries: int | None = None) -> Lot:
    """Insert a new Lot with the next free blend code, retrying on unique-constraint collisions.

    Each attempt runs in a SAVEPOINT so a collision with a concurrent writer
    rolls back only the lot insert, never the surrounding transition.
    """
    attempts = max_retries or current_app.config.get("LOT_CODE_MAX_RETRIES", 5)
    for attempt in range(1, attempts + 1):
        lot_code = next_batch_lot_code(organization_id)
        lot = Lot(organization_id=organization_id, lot_code=lot_code, phase=phase)
        savepoint = db.session.begin_nested()
        try:
            db.session.add(lot)
            db.session.flush()
            savepoint.commit()
            return lot
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "Lot code %s collided for org %s (attempt %s/%s)", lot_code, organization_id, attempt, attempts
            )
    raise SequenceExhaustedError(
        f"Could not allocate a unique lot code after {attempts} attempts",
        details={"attempts": attempts},
    )
