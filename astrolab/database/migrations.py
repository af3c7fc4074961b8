"""
Миграции схемы

Файлы migrations/*.sql применяются по порядку имён. Применённые записываются
в schema_migrations и при следующем запуске пропускаются. Файл и запись о нём
идут в одной транзакции: упавшая миграция не отмечается и будет повторена.
"""

import logging
from pathlib import Path
from typing import List

import asyncpg

from astrolab.database.connection import get_pool

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent.parent / "migrations"

# Ключ pg_advisory_lock: параллельные процессы применяют миграции по очереди
MIGRATIONS_LOCK_KEY = 7_402_311


async def _ensure_journal(conn: asyncpg.Connection):
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            name TEXT PRIMARY KEY,
            applied_at TIMESTAMP NOT NULL DEFAULT NOW()
        )
    """)


async def get_applied_migrations(conn: asyncpg.Connection) -> List[str]:
    rows = await conn.fetch("SELECT name FROM schema_migrations ORDER BY name")
    return [row["name"] for row in rows]


async def run_migrations() -> List[str]:
    """Применить новые миграции, вернуть имена применённых файлов"""
    if not MIGRATIONS_DIR.exists():
        logger.warning(f"Папка миграций не найдена: {MIGRATIONS_DIR}")
        return []

    sql_files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not sql_files:
        logger.info("Миграции не найдены")
        return []

    pool = await get_pool()
    applied = []

    async with pool.acquire() as conn:
        await conn.execute("SELECT pg_advisory_lock($1)", MIGRATIONS_LOCK_KEY)
        try:
            await _ensure_journal(conn)
            done = set(await get_applied_migrations(conn))

            for sql_file in sql_files:
                if sql_file.name in done:
                    logger.debug(f"Миграция {sql_file.name} уже применена")
                    continue

                logger.info(f"Выполняю миграцию: {sql_file.name}")
                try:
                    async with conn.transaction():
                        await conn.execute(sql_file.read_text(encoding="utf-8"))
                        await conn.execute(
                            "INSERT INTO schema_migrations (name) VALUES ($1)",
                            sql_file.name
                        )
                except asyncpg.PostgresError as e:
                    logger.error(f"Ошибка в {sql_file.name}: {e}")
                    raise

                applied.append(sql_file.name)
                logger.info(f"Миграция {sql_file.name} выполнена")
        finally:
            await conn.execute("SELECT pg_advisory_unlock($1)", MIGRATIONS_LOCK_KEY)

    return applied
