"""
Database Service - пул соединений PostgreSQL

Отвечает ТОЛЬКО за:
- Connection pooling (asyncpg)
- search_path на нужную схему
- Выдачу соединений и транзакций
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

logger = logging.getLogger(__name__)


class DatabaseService:
    """Сервис подключения к PostgreSQL"""

    def __init__(self, dsn: str, schema: str = "public"):
        self.dsn = dsn
        self.schema = schema
        self.pool: Optional[asyncpg.Pool] = None

        logger.info(f"DatabaseService initialized for {schema} schema")

    async def initialize(self, min_size: int = 2, max_size: int = 10) -> bool:
        """Инициализация connection pool"""

        try:
            self.pool = await asyncpg.create_pool(
                dsn=self.dsn,
                server_settings={'search_path': self.schema},
                min_size=min_size,
                max_size=max_size,
                max_inactive_connection_lifetime=300,
                command_timeout=30
            )

            async with self.pool.acquire() as conn:
                schema = await conn.fetchval("SELECT current_schema()")
                logger.info(f"✅ Connected to database, current schema: {schema}")

            return True

        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"❌ Failed to initialize database pool: {e}")
            return False

    @asynccontextmanager
    async def get_connection(self):
        """Получить соединение из пула"""

        if not self.pool:
            raise RuntimeError("Database pool not initialized")

        async with self.pool.acquire() as connection:
            try:
                yield connection
            except asyncpg.PostgresError as e:
                logger.error(f"Database operation error: {e}")
                raise

    @asynccontextmanager
    async def transaction(self):
        """Соединение внутри транзакции"""

        async with self.get_connection() as conn:
            async with conn.transaction():
                yield conn

    async def close(self):
        """Закрытие пула соединений"""

        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("Database pool closed")

    async def health_check(self) -> bool:
        """Проверка работоспособности БД"""

        try:
            async with self.get_connection() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except (RuntimeError, OSError, asyncpg.PostgresError) as e:
            logger.error(f"Database health check failed: {e}")
            return False
