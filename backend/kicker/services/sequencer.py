from __future__ import annotations

import logging
from asyncio import Lock
from typing import Awaitable, Callable, TypeVar

from ..exceptions import Busy, InvalidConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

REJECT = "reject"
QUEUE = "queue"


class MutationSequencer:
    """Admit at most one state-changing operation at a time.

    With the ``reject`` policy an operation arriving while another one is in
    flight fails with ``Busy``.  With ``queue`` it waits for its turn; waiters
    are admitted in arrival order.
    """

    def __init__(self, policy: str = REJECT) -> None:
        if policy not in (REJECT, QUEUE):
            raise InvalidConfig(f"unknown mutation policy: {policy!r}")
        self._policy = policy
        self._lock = Lock()
        self._current: str | None = None

    @property
    def policy(self) -> str:
        return self._policy

    def is_update_in_progress(self) -> bool:
        return self._lock.locked()

    async def run(self, name: str, operation: Callable[[], Awaitable[T]]) -> T:
        if self._policy == REJECT and self._lock.locked():
            logger.warning("Rejected %s while %s is in progress", name, self._current)
            raise Busy(f"cannot {name.replace('_', ' ')} while {self._current} is in progress")

        async with self._lock:
            self._current = name
            try:
                return await operation()
            finally:
                self._current = None
