"""
Usage/Stats Aggregator

Глобальные счетчики завершений для статистики вида
"N% пользователей разделяют ваш профиль".

record_completion - fire-and-forget: никогда не блокирует и не роняет
пользовательский запрос. Счетчики eventually consistent.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from ..tasks.background import BackgroundTaskRunner
from .counters import CounterStore

logger = logging.getLogger(__name__)

TOTAL_COMPLETED_KEY = "total_completed_users"
DEFAULT_SHARE_PERCENTAGE = 50.0


def signature_counter_key(signature: str) -> str:
    return f"personality:{signature}"


@dataclass
class ProfileShare:
    signature: str
    count: int
    total: int
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class UsageStatsAggregator:
    """Счетчики завершенных ассессментов по сигнатурам"""

    def __init__(self, counters: CounterStore, runner: BackgroundTaskRunner):
        self.counters = counters
        self.runner = runner

    def record_completion(self, signature: str) -> Optional[asyncio.Task]:
        """Запланировать инкременты; ошибки только логируются"""
        try:
            return self.runner.spawn(self._record(signature), name=f"stats:record_completion:{signature}")
        except RuntimeError as e:
            # Нет активного event loop
            logger.error(f"Could not schedule stats update for {signature}: {e}")
            return None

    async def _record(self, signature: str) -> None:
        count = await self.counters.incr(signature_counter_key(signature))
        total = await self.counters.incr(TOTAL_COMPLETED_KEY)
        logger.info(f"📊 Completion recorded for {signature}: {count}/{total}")

    async def profile_share(self, signature: str) -> ProfileShare:
        """
        Доля пользователей с той же сигнатурой.
        При пустой статистике или сбое хранилища - нейтральные 50%.
        """
        key = signature_counter_key(signature)
        try:
            values = await self.counters.get_many([key, TOTAL_COMPLETED_KEY])
        except Exception as e:
            logger.warning(f"Stats lookup failed for {signature}, using defaults: {e}")
            return ProfileShare(signature, 0, 0, DEFAULT_SHARE_PERCENTAGE)

        count = values.get(key, 0)
        total = values.get(TOTAL_COMPLETED_KEY, 0)
        if total <= 0:
            return ProfileShare(signature, count, 0, DEFAULT_SHARE_PERCENTAGE)

        return ProfileShare(signature, count, total, round(count / total * 100, 1))
