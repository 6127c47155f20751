import logging

from flask import Blueprint, request
from flask_login import current_user, login_required

from ...models import Batch, BatchPhase, Lot
from ...services.allocation_ledger import AllocationLedger
from ...services.batch_lifecycle import BatchLifecycleEngine, TransitionParams, scenario_from_payload
from ...services.blend_compatibility import validate_blend
from ...services.errors import NotFoundError, TransitionValidationError
from ...services.event_emitter import EventEmitter
from ...utils.api_responses import APIResponse

logger = logging.getLogger(__name__)

lifecycle_api_bp = Blueprint("lifecycle_api", __name__)


def _run_transition(batch_id, target_phase):
    payload = APIResponse.request_payload()
    scenario = scenario_from_payload(payload)
    params = TransitionParams.from_payload(payload, actor_id=current_user.id)
    result = BatchLifecycleEngine.transition(
        current_user.organization_id, batch_id, target_phase, scenario, params
    )
    return APIResponse.success(
        result.to_dict(),
        message=f"Batch {result.batch.code} is now {target_phase}",
        warnings=result.warnings,
    )


@lifecycle_api_bp.route("/batches/<int:batch_id>", methods=["GET"])
@login_required
def get_batch(batch_id):
    batch = Batch.get_scoped(current_user.organization_id, batch_id)
    if batch is None:
        raise NotFoundError("Batch", batch_id)
    active = AllocationLedger.active_allocation_for_batch(batch.id)
    data = batch.to_dict()
    data["active_allocation"] = active.to_dict() if active else None
    data["siblings"] = [sibling.to_dict() for sibling in batch.siblings]
    return APIResponse.success(data)


@lifecycle_api_bp.route("/batches/<int:batch_id>/timeline", methods=["GET"])
@login_required
def get_batch_timeline(batch_id):
    if Batch.get_scoped(current_user.organization_id, batch_id) is None:
        raise NotFoundError("Batch", batch_id)
    limit = request.args.get("limit", 50, type=int)
    events = EventEmitter.history(current_user.organization_id, batch_id=batch_id, limit=limit)
    return APIResponse.success([event.to_dict() for event in events])


@lifecycle_api_bp.route("/batches/<int:batch_id>/start-fermentation", methods=["POST"])
@login_required
def start_fermentation(batch_id):
    return _run_transition(batch_id, BatchPhase.FERMENTING)


@lifecycle_api_bp.route("/batches/<int:batch_id>/transfer-conditioning", methods=["POST"])
@login_required
def transfer_conditioning(batch_id):
    return _run_transition(batch_id, BatchPhase.CONDITIONING)


@lifecycle_api_bp.route("/batches/<int:batch_id>/start-packaging", methods=["POST"])
@login_required
def start_packaging(batch_id):
    return _run_transition(batch_id, BatchPhase.PACKAGED)


@lifecycle_api_bp.route("/batches/<int:batch_id>/transition", methods=["POST"])
@login_required
def transition(batch_id):
    payload = APIResponse.request_payload()
    target_phase = str(payload.get("target_phase") or "").strip().upper()
    if not target_phase:
        raise TransitionValidationError("target_phase is required")
    return _run_transition(batch_id, target_phase)


@lifecycle_api_bp.route("/batches/<int:batch_id>/cancel", methods=["POST"])
@login_required
def cancel_batch(batch_id):
    payload = APIResponse.request_payload()
    result = BatchLifecycleEngine.cancel(
        current_user.organization_id,
        batch_id,
        reason=payload.get("reason"),
        actor_id=current_user.id,
    )
    logger.info("User %s cancelled batch %s", current_user.id, batch_id)
    return APIResponse.success(result.to_dict(), message=f"Batch {result.batch.code} cancelled")


@lifecycle_api_bp.route("/blends/validate", methods=["POST"])
@login_required
def validate_blend_request():
    payload = APIResponse.request_payload()
    raw_ids = payload.get("batch_ids") or []
    try:
        batch_ids = [int(value) for value in raw_ids]
    except (TypeError, ValueError):
        raise TransitionValidationError("batch_ids must be integers", details={"batch_ids": raw_ids})
    if len(set(batch_ids)) < 2:
        raise TransitionValidationError("At least two batches are needed to check a blend")

    validation = validate_blend(current_user.organization_id, batch_ids)
    return APIResponse.success(validation.to_dict(), warnings=validation.warnings)


@lifecycle_api_bp.route("/lots/<int:lot_id>", methods=["GET"])
@login_required
def get_lot(lot_id):
    lot = Lot.get_scoped(current_user.organization_id, lot_id)
    if lot is None:
        raise NotFoundError("Lot", lot_id)
    return APIResponse.success(lot.to_dict())
