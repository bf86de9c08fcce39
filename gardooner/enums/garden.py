"""
Garden Enumerations
===================

Enums shared by the analysis pipeline, the action engine and the task
endpoints. Values are the wire values used in AI output and persistence.
"""

from enum import Enum


class TargetType(str, Enum):
    """What a task or care log applies to."""

    ZONE = "zone"
    PLANT = "plant"

    def __str__(self) -> str:
        return self.value


class ActionType(str, Enum):
    """
    Kind of care action.
    Used by: tasks, care logs, AI operations
    """

    WATER = "water"
    FERTILIZE = "fertilize"
    HARVEST = "harvest"
    PRUNE = "prune"
    PLANT = "plant"
    MONITOR = "monitor"
    PROTECT = "protect"
    OTHER = "other"

    def __str__(self) -> str:
        return self.value


class TaskPriority(str, Enum):
    """
    Urgency of a task.
    urgent = within 24 hours, today = today, upcoming = within a week,
    informational = FYI only.
    """

    URGENT = "urgent"
    TODAY = "today"
    UPCOMING = "upcoming"
    INFORMATIONAL = "informational"

    def __str__(self) -> str:
        return self.value


class TaskStatus(str, Enum):
    """Task lifecycle. Only PENDING is non-terminal."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class CompletedVia(str, Enum):
    """Who or what moved a task out of PENDING."""

    USER = "user"
    USER_DISMISSED = "user_dismissed"
    AI = "ai"
    AI_CHAT = "ai_chat"

    def __str__(self) -> str:
        return self.value


class AnalysisScope(str, Enum):
    ZONE = "zone"
    PLANT = "plant"
    GARDEN = "garden"

    def __str__(self) -> str:
        return self.value


class ProviderName(str, Enum):
    """LLM backends, in resolution order."""

    CLAUDE = "claude"
    KIMI = "kimi"

    def __str__(self) -> str:
        return self.value


class ChatActionType(str, Enum):
    """Action tags a chat reply may embed."""

    CREATE_TASK = "create_task"
    COMPLETE_TASK = "complete_task"
    CANCEL_TASK = "cancel_task"
    CREATE_CARE_LOG = "create_care_log"

    def __str__(self) -> str:
        return self.value


class ActionStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value
