"""Typed failures raised by the cellar services.

Every error carries an HTTP status and a machine code so the API layer can
translate it without inspecting messages. All of them are raised before or
instead of the commit; none leaves partial writes behind.
"""

from __future__ import annotations

from typing import Any


class BatchLifecycleError(RuntimeError):
    code = "lifecycle_error"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, **self.details}


class NotFoundError(BatchLifecycleError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", details={"entity": entity, "id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


class InvalidPhaseTransitionError(BatchLifecycleError):
    code = "invalid_phase_transition"

    def __init__(self, batch_code: str, current_phase: str, target_phase: str):
        super().__init__(
            f"Batch {batch_code} cannot move from {current_phase} to {target_phase}",
            details={"batch": batch_code, "current_phase": current_phase, "target_phase": target_phase},
        )
        self.current_phase = current_phase
        self.target_phase = target_phase


class ResourceConflictError(BatchLifecycleError):
    code = "resource_conflict"
    status_code = 409

    def __init__(self, message: str, *, availability: list[dict[str, Any]] | None = None):
        super().__init__(message, details={"availability": availability or []})
        self.availability = availability or []


class IncompatibleBlendError(BatchLifecycleError):
    code = "incompatible_blend"

    def __init__(self, errors: list[str], warnings: list[str] | None = None):
        super().__init__(
            "Batches cannot be blended: " + "; ".join(errors),
            details={"errors": list(errors), "warnings": list(warnings or [])},
        )
        self.errors = list(errors)
        self.warnings = list(warnings or [])


class SequenceExhaustedError(BatchLifecycleError):
    code = "sequence_exhausted"
    status_code = 409


class TransitionValidationError(BatchLifecycleError):
    code = "validation_error"
