"""
Background Task Runner

Fire-and-forget задачи (вторичная генерация, статистика):
- основной ответ их никогда не ждет
- исключения только логируются
- сильные ссылки на задачи держатся до завершения
"""

import asyncio
from typing import Awaitable, Optional, Set

from ..core.logging import get_logger

logger = get_logger(__name__)


class BackgroundTaskRunner:
    """Запуск и учет фоновых задач в текущем event loop"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.stats = {
            "spawned": 0,
            "succeeded": 0,
            "failed": 0,
        }

    def spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        task = asyncio.ensure_future(self._run(coro, name))
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.stats["spawned"] += 1
        return task

    async def _run(self, coro: Awaitable, name: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.warning("background_task_cancelled", task=name)
            raise
        except Exception as e:
            self.stats["failed"] += 1
            logger.error("background_task_failed", task=name, error=f"{type(e).__name__}: {e}", exc_info=True)
        else:
            self.stats["succeeded"] += 1
            logger.debug("background_task_done", task=name)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Дождаться текущих задач (shutdown, тесты)"""
        while self._tasks:
            done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
            if pending:
                logger.warning("background_tasks_still_running", count=len(pending))
                return
