"""
Unit of Work: manages repositories, transaction boundaries and post-commit hooks.
"""

from typing import Awaitable, Callable, List, Optional
from sqlmodel.ext.asyncio.session import AsyncSession
from framework.logging.logger import get_logger

logger = get_logger("unit_of_work")

PostCommitHook = Callable[[], Awaitable[None]]


class UnitOfWork:
    """Shares one session between repositories and commits or rolls back as a whole.

    Hooks registered with ``after_commit`` run only once ``commit`` has
    succeeded; a rollback discards them. Services use this to tie cache
    invalidation to the write it belongs to.
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        if session is None:
            raise ValueError("Session must be provided.")

        self.session = session
        self._repositories = {}
        self._post_commit: List[PostCommitHook] = []

    def get_repository(self, repo_class):
        """Get or create a repository instance bound to this session."""
        key = repo_class.__name__
        if key not in self._repositories:
            self._repositories[key] = repo_class(self.session)
        return self._repositories[key]

    def after_commit(self, hook: PostCommitHook) -> None:
        self._post_commit.append(hook)

    async def commit(self) -> None:
        await self.session.commit()
        hooks, self._post_commit = self._post_commit, []
        if hooks:
            logger.debug(f"Committed, running {len(hooks)} post-commit hook(s)")
        for hook in hooks:
            await hook()

    async def rollback(self) -> None:
        self._post_commit = []
        await self.session.rollback()

    async def flush(self) -> None:
        """Flush session (e.g. to get auto-increment IDs)."""
        await self.session.flush()

