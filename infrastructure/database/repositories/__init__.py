"""Repository facades exposing typed accessors over low-level mixins.

Collaborator protocols are available for type-checking and dependency
injection::

    from infrastructure.database.repositories.base import ApiKeyStore
"""

from infrastructure.database.repositories.accounts import AccountRepository
from infrastructure.database.repositories.analysis import AnalysisRepository
from infrastructure.database.repositories.base import ApiKeyStore, KeyDecryptor
from infrastructure.database.repositories.conversations import ConversationRepository
from infrastructure.database.repositories.gardens import GardenRepository
from infrastructure.database.repositories.tasks import TaskRepository

__all__ = [
    "AccountRepository",
    "AnalysisRepository",
    "ApiKeyStore",
    "ConversationRepository",
    "GardenRepository",
    "KeyDecryptor",
    "TaskRepository",
]
