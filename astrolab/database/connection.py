"""
Пул соединений PostgreSQL и транзакции
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

from astrolab.config import config

logger = logging.getLogger(__name__)

# Глобальный пул соединений
_pool: Optional[asyncpg.Pool] = None


def _log_query(record):
    """Трассировка SQL (включается через SQL_TRACE)"""
    logger.debug(f"SQL: {record.query.strip()} | args={record.args} | {record.elapsed:.4f}s")


async def _init_connection(conn: asyncpg.Connection):
    if config.SQL_TRACE:
        conn.add_query_logger(_log_query)


async def get_pool() -> asyncpg.Pool:
    """Получить пул соединений (создаёт при первом вызове)"""
    global _pool

    if _pool is None:
        _pool = await asyncpg.create_pool(
            config.DATABASE_URL,
            min_size=config.DB_POOL_MIN_SIZE,
            max_size=config.DB_POOL_MAX_SIZE,
            init=_init_connection
        )

    return _pool


async def close_pool():
    """Закрыть пул соединений"""
    global _pool

    if _pool:
        await _pool.close()
        _pool = None


@asynccontextmanager
async def transaction() -> AsyncIterator[asyncpg.Connection]:
    """
    Соединение с открытой транзакцией.
    COMMIT при нормальном выходе, ROLLBACK при исключении, соединение всегда
    возвращается в пул.
    """
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn
