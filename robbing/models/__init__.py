"""
Component Robbing Tracker
Domain models package.
"""

from robbing.models.robbing import (  # noqa: F401
    Caller,
    Component,
    ComponentStatus,
    DocumentHandle,
    DocumentSlot,
    DocumentSlotName,
    Documentation,
    LifeRemaining,
    Normalization,
    Priority,
    Requester,
    RobbingRequest,
    RobbingStatus,
    Role,
    SdsDeclaration,
    StatusHistoryEntry,
)
