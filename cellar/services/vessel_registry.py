from __future__ import annotations

import logging
from typing import Optional

from ..extensions import db
from ..models import AllocationStatus, Vessel, VesselAllocation, VesselStatus
from .errors import NotFoundError, ResourceConflictError, TransitionValidationError

logger = logging.getLogger(__name__)

OCCUPATION_HISTORY_LIMIT = 20


class VesselRegistry:
    """Status and capacity of each vessel. No scheduling decisions are made here."""

    @staticmethod
    def get(organization_id: int, vessel_id: int) -> Vessel:
        vessel = Vessel.get_scoped(organization_id, vessel_id)
        if vessel is None:
            raise NotFoundError("Vessel", vessel_id)
        return vessel

    @staticmethod
    def list_vessels(
        organization_id: int,
        *,
        status: Optional[str] = None,
        min_capacity: Optional[float] = None,
    ) -> list[Vessel]:
        query = Vessel.for_organization(organization_id)
        if status:
            query = query.filter(Vessel.status == status)
        if min_capacity is not None:
            query = query.filter(Vessel.capacity >= min_capacity)
        return query.order_by(Vessel.capacity.asc(), Vessel.name.asc()).all()

    @staticmethod
    def available(organization_id: int, *, min_capacity: Optional[float] = None) -> list[Vessel]:
        """Vessels free right now, smallest capacity first."""
        return VesselRegistry.list_vessels(organization_id, status=VesselStatus.AVAILABLE, min_capacity=min_capacity)

    @staticmethod
    def set_status(organization_id: int, vessel_id: int, status: str) -> Vessel:
        """Manual status change by an operator; refused while the vessel is occupied."""
        if status not in VesselStatus.MANUAL:
            raise TransitionValidationError(
                f"Status {status!r} cannot be set manually",
                details={"allowed": sorted(VesselStatus.MANUAL)},
            )

        vessel = VesselRegistry.get(organization_id, vessel_id)
        if vessel.current_allocation_id is not None:
            raise ResourceConflictError(
                f"Vessel {vessel.name} is occupied by batch {vessel.current_batch_id}",
                availability=[{"vessel_id": vessel.id, "current_allocation_id": vessel.current_allocation_id}],
            )

        previous = vessel.status
        vessel.status = status
        try:
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            logger.error("Failed to set vessel %s status to %s: %s", vessel_id, status, exc)
            raise
        logger.info("Vessel %s status %s -> %s", vessel.id, previous, status)
        return vessel

    @staticmethod
    def occupation_history(organization_id: int, vessel_id: int, limit: int = OCCUPATION_HISTORY_LIMIT) -> list[VesselAllocation]:
        VesselRegistry.get(organization_id, vessel_id)
        return (
            VesselAllocation.query.filter(
                VesselAllocation.organization_id == organization_id,
                VesselAllocation.vessel_id == vessel_id,
                VesselAllocation.status != AllocationStatus.CANCELLED,
            )
            .order_by(VesselAllocation.planned_start.desc(), VesselAllocation.id.desc())
            .limit(limit)
            .all()
        )
