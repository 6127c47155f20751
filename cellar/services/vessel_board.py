"""
Vessel Board Cache

Read-optimized snapshot of every vessel in an organization with its current
occupant, mirrored into the Flask-Caching store after each committed
transition. Consumers must tolerate a stale or missing snapshot.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import List, Optional

from flask import current_app

from ..extensions import cache, db
from ..models import Batch, Vessel, VesselAllocation
from ..utils.timezone_utils import TimezoneUtils

logger = logging.getLogger(__name__)


@dataclass
class VesselBoardEntry:
    vessel_id: int
    name: str
    vessel_type: str
    capacity: float
    status: str
    batch_id: Optional[int] = None
    batch_code: Optional[str] = None
    batch_phase: Optional[str] = None
    allocation_id: Optional[int] = None
    planned_end: Optional[str] = None
    fill_pct: Optional[float] = None

    @classmethod
    def from_vessel(cls, vessel: Vessel) -> 'VesselBoardEntry':
        entry = cls(
            vessel_id=vessel.id,
            name=vessel.name,
            vessel_type=vessel.vessel_type,
            capacity=vessel.capacity,
            status=vessel.status,
        )
        batch: Optional[Batch] = vessel.current_batch
        if batch is not None:
            entry.batch_id = batch.id
            entry.batch_code = batch.code
            entry.batch_phase = batch.phase
        if vessel.current_allocation_id:
            allocation = db.session.get(VesselAllocation, vessel.current_allocation_id)
            if allocation is not None:
                entry.allocation_id = allocation.id
                entry.planned_end = TimezoneUtils.format_datetime_for_api(allocation.planned_end)
                volume = allocation.volume if allocation.volume is not None else (batch.volume if batch else None)
                if volume and vessel.capacity:
                    entry.fill_pct = round(100.0 * volume / vessel.capacity, 1)
        return entry


class VesselBoardService:
    """Builds and mirrors the per-organization vessel board."""

    @staticmethod
    def get_cache_key(org_id: int) -> str:
        return f"vessel_board:org:{org_id}"

    @staticmethod
    def build(org_id: int) -> List[VesselBoardEntry]:
        vessels = Vessel.for_organization(org_id).order_by(Vessel.name.asc()).all()
        return [VesselBoardEntry.from_vessel(vessel) for vessel in vessels]

    @staticmethod
    def publish(org_id: int) -> List[VesselBoardEntry]:
        """Rebuild from the database and overwrite the cached copy. Errors propagate."""
        entries = VesselBoardService.build(org_id)
        ttl = current_app.config.get('VESSEL_BOARD_CACHE_TTL', 120)
        cache.set(
            VesselBoardService.get_cache_key(org_id),
            json.dumps([asdict(entry) for entry in entries]),
            timeout=ttl,
        )
        logger.debug(f"Published vessel board for org {org_id} ({len(entries)} vessels, TTL: {ttl}s)")
        return entries

    @staticmethod
    def get_board(org_id: int) -> List[dict]:
        """Cached board, rebuilt on a miss."""
        try:
            cached = cache.get(VesselBoardService.get_cache_key(org_id))
        except Exception as e:
            logger.warning(f"Vessel board cache read failed for org {org_id}: {e}")
            cached = None
        if cached:
            return json.loads(cached)

        entries = VesselBoardService.build(org_id)
        try:
            cache.set(
                VesselBoardService.get_cache_key(org_id),
                json.dumps([asdict(entry) for entry in entries]),
                timeout=current_app.config.get('VESSEL_BOARD_CACHE_TTL', 120),
            )
        except Exception as e:
            logger.warning(f"Failed to cache vessel board for org {org_id}: {e}")
        return [asdict(entry) for entry in entries]

    @staticmethod
    def invalidate(org_id: int) -> bool:
        try:
            cache.delete(VesselBoardService.get_cache_key(org_id))
            return True
        except Exception as e:
            logger.warning(f"Failed to invalidate vessel board for org {org_id}: {e}")
            return False
