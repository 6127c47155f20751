from .dto import SecondaryOutcome, TransitionParams, TransitionResult
from .engine import BatchLifecycleEngine
from .scenarios import Blend, Scenario, Simple, Split, VesselShare, scenario_from_payload

__all__ = [
    "BatchLifecycleEngine",
    "Blend",
    "Scenario",
    "SecondaryOutcome",
    "Simple",
    "Split",
    "TransitionParams",
    "TransitionResult",
    "VesselShare",
    "scenario_from_payload",
]
