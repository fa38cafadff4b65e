"""
Планировщик периодических задач
"""
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import settings

logger = logging.getLogger(__name__)


async def sweep_job(sweeper):
    """Задача обработки броней: аннулирование и активация"""
    try:
        await sweeper.run()
    except Exception as e:
        logger.error(f"Ошибка при обработке броней: {e}", exc_info=True)


async def start_scheduler(sweeper) -> AsyncIOScheduler:
    """Запуск планировщика задач"""
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        sweep_job,
        trigger=IntervalTrigger(minutes=settings.SWEEP_INTERVAL_MINUTES),
        args=[sweeper],
        id='reservation_sweep',
        name='Активация и аннулирование броней',
        max_instances=1,
        coalesce=True,
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"Планировщик задач запущен (каждые {settings.SWEEP_INTERVAL_MINUTES} мин)")

    return scheduler
