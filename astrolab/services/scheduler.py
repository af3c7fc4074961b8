"""
Планировщик задач — очистка просроченных отметок
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from astrolab.config import config
from astrolab.services import checkins

logger = logging.getLogger(__name__)

# Глобальный планировщик
scheduler = AsyncIOScheduler(timezone=config.TIMEZONE)


async def purge_expired_checkins():
    """
    Job: удаление отметок старше CHECKIN_TIMEOUT секунд.
    """
    try:
        removed = checkins.purge_expired(config.CHECKIN_TIMEOUT)
        if removed:
            logger.info(f"Scheduler: удалено просроченных отметок: {removed}")
    except Exception as e:
        logger.error(f"Scheduler error in purge_expired_checkins: {e}")


def setup_scheduler():
    """
    Настройка планировщика.
    Каждый запуск создаёт новый экземпляр: AsyncIOScheduler привязывается к
    event loop при первом start().
    """
    global scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)
    scheduler = AsyncIOScheduler(timezone=config.TIMEZONE)

    scheduler.add_job(
        purge_expired_checkins,
        IntervalTrigger(seconds=config.CHECKIN_PURGE_INTERVAL, timezone=config.TIMEZONE),
        id="purge_expired_checkins",
        replace_existing=True
    )

    scheduler.start()
    logger.info("Scheduler запущен")


def shutdown_scheduler():
    """Остановка планировщика"""
    if scheduler.running:
        scheduler.shutdown()
    logger.info("Scheduler остановлен")
