import importlib
import logging

logger = logging.getLogger(__name__)

# (dotted path to blueprint, label)
BLUEPRINTS = (
    ("cellar.blueprints.api.api_bp", "Cellar API"),
)


def register_blueprints(app):
    """Import and register every cellar blueprint; an import failure aborts startup."""
    registered = []
    for dotted_path, label in BLUEPRINTS:
        module_path, attr = dotted_path.rsplit(".", 1)
        app.register_blueprint(getattr(importlib.import_module(module_path), attr))
        registered.append(label)
    logger.info("Registered blueprints: %s", ", ".join(registered))
    return registered
