"""Persistence collaborators: the abstract interface plus memory and YAML-file backends."""

from .file_repo import FileProjectRepository
from .interfaces import PersistenceCollaborator
from .memory import InMemoryPersistence

__all__ = [
    "FileProjectRepository",
    "InMemoryPersistence",
    "PersistenceCollaborator",
]
