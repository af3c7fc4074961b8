"""
Главная точка входа

python -m astrolab.main — проверить конфигурацию и применить миграции.
startup()/shutdown() — для процесса, который встраивает сервис групп.
"""

import asyncio
import logging

from astrolab.config import config
from astrolab.database.connection import get_pool, close_pool
from astrolab.database.migrations import run_migrations
from astrolab.services.scheduler import setup_scheduler, shutdown_scheduler


# Настройка логирования
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, config.LOG_LEVEL, logging.INFO)
)
logger = logging.getLogger(__name__)


async def startup():
    """Инициализация: БД, миграции, планировщик"""
    await get_pool()
    await run_migrations()
    logger.info("База данных подключена, миграции выполнены")

    setup_scheduler()
    logger.info("Планировщик запущен")


async def shutdown():
    """Очистка при завершении"""
    shutdown_scheduler()
    await close_pool()
    logger.info("Соединение с БД закрыто")


async def init_database():
    """Применить миграции и закрыть пул"""
    try:
        await get_pool()
        await run_migrations()
        logger.info("Миграции выполнены")
    finally:
        await close_pool()


def main():
    """Запуск"""

    # Проверка конфигурации
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Ошибка конфигурации: {error}")
        return 1

    asyncio.run(init_database())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
