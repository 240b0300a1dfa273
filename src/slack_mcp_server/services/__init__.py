"""Domain services: one class per tool domain, all sharing ``ServiceDependencies``."""

from .base import BaseService, ServiceDependencies
from .files import FileService
from .messages import MessageService
from .reactions import ReactionService
from .threads import ThreadService
from .workspace import WorkspaceService

__all__ = [
    "BaseService",
    "FileService",
    "MessageService",
    "ReactionService",
    "ServiceDependencies",
    "ThreadService",
    "WorkspaceService",
]
