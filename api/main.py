"""
REST API распределения столов
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from aiogram import Bot
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api import dependencies
from api.routes import reservations_router, tables_router
from config import settings
from database.database import init_db
from services.errors import (
    AllocationError, CapacityError, ConflictError, ForbiddenError, NotFoundError,
    TransientStoreError, ValidationError
)
from services.notifications import TelegramNotifier
from utils.scheduler import start_scheduler

logger = logging.getLogger(__name__)

# Порядок важен: CapacityError - подкласс ValidationError,
# SlotTakenError - одновременно конфликт и ошибка валидации
STATUS_CODES = (
    (CapacityError, 422),
    (ConflictError, 409),
    (ValidationError, 400),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (TransientStoreError, 503),
)


def status_code_for(error: AllocationError) -> int:
    for error_class, status_code in STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return 400


async def allocation_error_handler(request: Request, exc: AllocationError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code == 503:
        logger.error(f"Ошибка хранилища на {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("База данных инициализирована")

    bot = None
    if settings.BOT_TOKEN:
        bot = Bot(token=settings.BOT_TOKEN)
        dependencies.configure_notifier(TelegramNotifier(bot))

    scheduler = await start_scheduler(dependencies.sweeper)
    try:
        yield
    finally:
        scheduler.shutdown()
        if bot is not None:
            await bot.session.close()


def create_app() -> FastAPI:
    app = FastAPI(title="Restaurant table allocation", lifespan=lifespan)
    app.include_router(reservations_router)
    app.include_router(tables_router)
    app.add_exception_handler(AllocationError, allocation_error_handler)
    return app


app = create_app()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
