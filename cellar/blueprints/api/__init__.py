import logging

from flask import Blueprint

from ...services.errors import BatchLifecycleError
from ...utils.api_responses import APIResponse

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')

from .lifecycle_routes import lifecycle_api_bp  # noqa: E402
from .vessel_routes import vessel_api_bp  # noqa: E402

api_bp.register_blueprint(lifecycle_api_bp)
api_bp.register_blueprint(vessel_api_bp)


@api_bp.errorhandler(BatchLifecycleError)
def _lifecycle_error(err: BatchLifecycleError):
    logger.info("API request rejected (%s): %s", err.code, err.message)
    return APIResponse.from_exception(err)
