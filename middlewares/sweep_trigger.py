"""
Middleware: обработка броней перед действиями персонала

Персонал должен видеть актуальную очередь и столы, не дожидаясь планировщика.
"""
import logging
from typing import Callable, Dict, Any, Awaitable

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from config import settings
from services.errors import AllocationError

logger = logging.getLogger(__name__)


class SweepMiddleware(BaseMiddleware):
    """Запуск прохода sweeper перед обработкой апдейта от сотрудника"""

    def __init__(self, sweeper):
        self.sweeper = sweeper

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        user = data.get('event_from_user')
        if user is not None and settings.is_staff(user.id):
            try:
                await self.sweeper.run()
            except AllocationError as e:
                logger.error(f"Не удалось обработать брони перед апдейтом: {e.message}")

        return await handler(event, data)
