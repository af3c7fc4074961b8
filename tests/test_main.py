"""
Тесты точки входа: startup/shutdown, init_database, main()
"""

import pytest

pytestmark = [pytest.mark.unit]

import asyncio
from unittest.mock import AsyncMock, patch

from astrolab import main
from astrolab.config import Config
from astrolab.database import connection as db_connection
from astrolab.services import scheduler


@pytest.mark.asyncio
async def test_startup_and_shutdown(db_pool):
    """
    Тест: startup открывает пул, применяет миграции и запускает планировщик,
    shutdown всё останавливает
    """
    await main.startup()
    try:
        assert db_connection._pool is not None
        assert scheduler.scheduler.running
        assert scheduler.scheduler.get_job("purge_expired_checkins") is not None
        assert await db_pool.fetchval(
            "SELECT COUNT(*) FROM schema_migrations WHERE name = '001_initial.sql'"
        ) == 1
    finally:
        await main.shutdown()

    await asyncio.sleep(0)
    assert db_connection._pool is None
    assert not scheduler.scheduler.running


@pytest.mark.asyncio
async def test_init_database_closes_pool(db_pool):
    """
    Тест: init_database применяет миграции и закрывает пул
    """
    await main.init_database()

    assert db_connection._pool is None
    assert await db_pool.fetchval(
        "SELECT to_regclass('public.group_members') IS NOT NULL"
    ) is True


def test_main_stops_on_config_errors():
    """
    Тест: при ошибках конфигурации main() возвращает 1 и не трогает БД
    """
    with patch.object(Config, "DATABASE_URL", ""), \
            patch.object(main, "init_database", AsyncMock()) as init_database:
        assert main.main() == 1

    init_database.assert_not_called()


def test_main_runs_init_database():
    """
    Тест: при корректной конфигурации main() применяет миграции и возвращает 0
    """
    with patch.object(main, "init_database", AsyncMock()) as init_database:
        assert main.main() == 0

    init_database.assert_awaited_once()
