"""
Start-up of the AI services.

The initializer is an ordinary object: build it once at application start,
keep it on ``app.state`` and hand it to whoever needs it. Nothing here is
process-global, so tests construct their own with fake services.
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from framework.logging.logger import get_logger

logger = get_logger("ai_initializer")

StartHook = Callable[[], Awaitable[None]]


@dataclass
class InitResult:
    initialized: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failed


class AISystemInitializer:
    def __init__(self, services: Optional[Dict[str, StartHook]] = None):
        self._services: Dict[str, StartHook] = dict(services or {})
        self._result: Optional[InitResult] = None

    def register(self, name: str, start: StartHook) -> None:
        if self._result is not None:
            raise RuntimeError(f"Cannot register {name!r} after init(); call reinit()")
        self._services[name] = start

    @property
    def is_initialized(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> Optional[InitResult]:
        return self._result

    async def init(self) -> InitResult:
        """Start every registered service once; later calls return the first result."""
        if self._result is not None:
            return self._result

        result = InitResult()
        for name, start in self._services.items():
            try:
                await start()
                result.initialized.append(name)
            except Exception as e:
                # one broken service must not keep the others down
                logger.opt(exception=True).error(f"AI service {name} failed to start: {e}")
                result.failed.append(name)
                result.errors[name] = str(e)

        logger.info(f"AI services started: {len(result.initialized)} ok, {len(result.failed)} failed")
        self._result = result
        return result

    async def reinit(self) -> InitResult:
        self._result = None
        return await self.init()
