"""Models package - imports all models for the application"""
from ..extensions import db
from .mixins import ScopedModelMixin, TimestampMixin

# Import in dependency order for PostgreSQL table creation
from .models import Organization, User
from .recipe import Recipe
from .lot import Lot
from .batch import ABV_FACTOR, Batch, BatchPhase
from .vessel import Vessel, VesselStatus, VesselType
from .allocation import AllocationStatus, VesselAllocation
from .timeline_event import TimelineEvent

__all__ = [
    'db',
    'ScopedModelMixin',
    'TimestampMixin',
    'Organization',
    'User',
    'Recipe',
    'Lot',
    'Batch',
    'BatchPhase',
    'ABV_FACTOR',
    'Vessel',
    'VesselStatus',
    'VesselType',
    'VesselAllocation',
    'AllocationStatus',
    'TimelineEvent',
]
