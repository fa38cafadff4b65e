"""
Главный файл Telegram-бота распределения столов ресторана
"""
import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from config import settings
from database.database import init_db
from handlers import client_handlers, staff_handlers
from middlewares.sweep_trigger import SweepMiddleware
from services.notifications import TelegramNotifier
from services.reservations import ReservationService
from services.sweeper import ActivationSweeper
from services.tables import TableRegistry
from services.waiting_list import WaitingListService
from utils.scheduler import start_scheduler

# Настройка логирования
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Основная функция запуска бота"""
    logger.info("Запуск бота...")

    if not settings.BOT_TOKEN:
        raise ValueError("BOT_TOKEN не установлен в переменных окружения")

    # Инициализация БД
    init_db()
    logger.info("База данных инициализирована")

    bot = Bot(token=settings.BOT_TOKEN)
    notifier = TelegramNotifier(bot)
    sweeper = ActivationSweeper(notifier)

    # Сервисы передаются в хендлеры по имени аргумента
    storage = MemoryStorage()
    dp = Dispatcher(
        storage=storage,
        reservation_service=ReservationService(notifier),
        waiting_list_service=WaitingListService(notifier),
        table_registry=TableRegistry(),
        sweeper=sweeper
    )

    # Персонал видит актуальное состояние броней
    dp.message.middleware(SweepMiddleware(sweeper))
    dp.callback_query.middleware(SweepMiddleware(sweeper))

    # Регистрация роутеров
    dp.include_router(staff_handlers.router)
    dp.include_router(client_handlers.router)

    scheduler = await start_scheduler(sweeper)

    try:
        logger.info("Бот успешно запущен")
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        scheduler.shutdown()
        await bot.session.close()
        logger.info("Бот остановлен")


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Бот остановлен пользователем")
    except Exception as e:
        logger.error(f"Критическая ошибка: {e}", exc_info=True)
