from typing import Any, Dict, List, Optional

from flask import jsonify, request


class APIResponse:
    """JSON envelope shared by every cellar endpoint: ``success``, ``message``, then ``data`` or ``errors``."""

    @staticmethod
    def success(data: Any = None, message: str = "OK", status_code: int = 200, warnings: Optional[List[str]] = None):
        body = {"success": True, "message": message, "data": data}
        if warnings:
            body["warnings"] = list(warnings)
        return jsonify(body), status_code

    @staticmethod
    def error(message: str, errors: Optional[Dict[str, Any]] = None, status_code: int = 400):
        return jsonify({"success": False, "message": message, "errors": errors or {}}), status_code

    @staticmethod
    def from_exception(err):
        """Render a BatchLifecycleError with its own status and machine-readable details."""
        return APIResponse.error(err.message, errors=err.to_dict(), status_code=err.status_code)

    @staticmethod
    def request_payload() -> Dict[str, Any]:
        if request.is_json:
            return request.get_json(silent=True) or {}
        return request.form.to_dict() if request.form else {}


__all__ = ["APIResponse"]
