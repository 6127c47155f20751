import logging

from flask import Blueprint, request
from flask_login import current_user, login_required

from ...services.allocation_ledger import AllocationLedger
from ...services.batch_lifecycle import BatchLifecycleEngine
from ...services.errors import TransitionValidationError
from ...services.vessel_board import VesselBoardService
from ...services.vessel_registry import VesselRegistry
from ...utils.api_responses import APIResponse
from ...utils.timezone_utils import TimezoneUtils

logger = logging.getLogger(__name__)

vessel_api_bp = Blueprint("vessel_api", __name__, url_prefix="/vessels")


def _required_datetime(source, key):
    raw = source.get(key)
    try:
        value = TimezoneUtils.parse_iso(raw)
    except ValueError:
        value = None
    if value is None:
        raise TransitionValidationError(f"{key} must be an ISO-8601 timestamp", details={key: raw})
    return value


def _required_int(source, key):
    raw = source.get(key)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise TransitionValidationError(f"{key} must be an integer", details={key: raw})


@vessel_api_bp.route("", methods=["GET"])
@login_required
def list_vessels():
    min_capacity = request.args.get("min_capacity", type=float)
    if request.args.get("available") in ("1", "true", "yes"):
        vessels = VesselRegistry.available(current_user.organization_id, min_capacity=min_capacity)
    else:
        vessels = VesselRegistry.list_vessels(
            current_user.organization_id,
            status=request.args.get("status"),
            min_capacity=min_capacity,
        )
    return APIResponse.success([vessel.to_dict() for vessel in vessels])


@vessel_api_bp.route("/board", methods=["GET"])
@login_required
def vessel_board():
    return APIResponse.success(VesselBoardService.get_board(current_user.organization_id))


@vessel_api_bp.route("/<int:vessel_id>/availability", methods=["GET"])
@login_required
def vessel_availability(vessel_id):
    start = _required_datetime(request.args, "start")
    end = _required_datetime(request.args, "end")
    exclude = request.args.get("exclude", type=int)
    result = AllocationLedger.check_availability(
        current_user.organization_id, vessel_id, start, end, exclude_allocation_id=exclude
    )
    return APIResponse.success(result.to_dict())


@vessel_api_bp.route("/availability", methods=["POST"])
@login_required
def multi_vessel_availability():
    payload = APIResponse.request_payload()
    raw_ids = payload.get("vessel_ids") or []
    if not isinstance(raw_ids, list) or not raw_ids:
        raise TransitionValidationError("vessel_ids must be a non-empty list")
    vessel_ids = [_required_int({"vessel_id": value}, "vessel_id") for value in raw_ids]
    result = AllocationLedger.check_multiple(
        current_user.organization_id,
        vessel_ids,
        _required_datetime(payload, "start"),
        _required_datetime(payload, "end"),
    )
    return APIResponse.success(result.to_dict())


@vessel_api_bp.route("/<int:vessel_id>/status", methods=["PATCH"])
@login_required
def update_vessel_status(vessel_id):
    payload = APIResponse.request_payload()
    status = str(payload.get("status") or "").strip().upper()
    vessel = VesselRegistry.set_status(current_user.organization_id, vessel_id, status)
    VesselBoardService.invalidate(current_user.organization_id)
    return APIResponse.success(vessel.to_dict(), message=f"Vessel {vessel.name} is now {vessel.status}")


@vessel_api_bp.route("/<int:vessel_id>/history", methods=["GET"])
@login_required
def vessel_history(vessel_id):
    limit = request.args.get("limit", 20, type=int)
    allocations = VesselRegistry.occupation_history(current_user.organization_id, vessel_id, limit=limit)
    return APIResponse.success([allocation.to_dict() for allocation in allocations])


@vessel_api_bp.route("/<int:vessel_id>/bookings", methods=["POST"])
@login_required
def book_vessel(vessel_id):
    payload = APIResponse.request_payload()
    volume = payload.get("volume")
    try:
        volume = float(volume) if volume not in (None, "") else None
    except (TypeError, ValueError):
        raise TransitionValidationError("volume must be a number", details={"volume": volume})
    allocation = BatchLifecycleEngine.plan_allocation(
        current_user.organization_id,
        _required_int(payload, "batch_id"),
        vessel_id,
        str(payload.get("phase") or "").strip().upper(),
        _required_datetime(payload, "planned_start"),
        _required_datetime(payload, "planned_end"),
        volume=volume,
        actor_id=current_user.id,
    )
    logger.info("User %s booked vessel %s for batch %s", current_user.id, vessel_id, allocation.batch_id)
    return APIResponse.success(allocation.to_dict(), message="Vessel booked", status_code=201)


@vessel_api_bp.route("/bookings/<int:allocation_id>", methods=["DELETE"])
@login_required
def cancel_booking(allocation_id):
    allocation = BatchLifecycleEngine.cancel_booking(current_user.organization_id, allocation_id)
    return APIResponse.success(allocation.to_dict(), message="Booking cancelled")
