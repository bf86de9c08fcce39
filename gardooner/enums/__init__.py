"""
Enums Module
============

Enumeration types for the Gardooner application.
"""

from gardooner.enums.garden import (
    ActionStatus,
    ActionType,
    AnalysisScope,
    ChatActionType,
    CompletedVia,
    ProviderName,
    TargetType,
    TaskPriority,
    TaskStatus,
)

__all__ = [
    "ActionStatus",
    "ActionType",
    "AnalysisScope",
    "ChatActionType",
    "CompletedVia",
    "ProviderName",
    "TargetType",
    "TaskPriority",
    "TaskStatus",
]
