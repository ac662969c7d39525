from __future__ import annotations

import logging
from typing import Awaitable, Callable


logger = logging.getLogger(__name__)

RollbackAction = Callable[[], Awaitable[None]]


class RollbackManager:
    """Compensating actions for one provisioning sequence, undone last-in first-out."""

    def __init__(self) -> None:
        self._actions: list[tuple[str, RollbackAction]] = []

    def __len__(self) -> int:
        return len(self._actions)

    def add(self, description: str, action: RollbackAction) -> None:
        self._actions.append((description, action))

    async def run(self) -> int:
        """Execute and forget every registered action, newest first.

        A failing action is logged and the remaining ones still run. Returns the
        number of actions that failed.
        """

        actions, self._actions = self._actions, []
        if not actions:
            return 0

        logger.warning("executing %d rollback tasks", len(actions))

        failed = 0
        for description, action in reversed(actions):
            logger.warning("rollback: %s", description)
            try:
                await action()
            except Exception as exc:
                failed += 1
                logger.warning("rollback: %s failed: %s", description, exc)

        if failed:
            logger.error("rollback finished with %d failed tasks", failed)
        return failed
