"""
Data access layer: table repositories sharing one session through a UnitOfWork.

Services never touch the session directly; they ask the unit of work for
repositories and commit through it so post-commit hooks (cache invalidation)
run only for writes that reached the database.
"""

from .base import BaseRepository, IRepository
from .unit_of_work import PostCommitHook, UnitOfWork

__all__ = ["BaseRepository", "IRepository", "PostCommitHook", "UnitOfWork"]
