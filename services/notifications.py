"""
Рассылка уведомлений

Уведомления отправляются по принципу "отправил и забыл": ошибка доставки
логируется и никогда не срывает операцию, которая её вызвала.
"""
import logging
from typing import Any, Dict, List, Optional

from config import settings
from keyboards.keyboards import get_decision_keyboard

logger = logging.getLogger(__name__)


class Event:
    """События, о которых сообщаем"""
    RESERVATION_CREATED = 'reservation_created'
    RESERVATION_APPROVED = 'reservation_approved'
    RESERVATION_REJECTED = 'reservation_rejected'
    RESERVATION_CANCELLED = 'reservation_cancelled'
    RESERVATION_ACTIVATED = 'reservation_activated'
    RESERVATION_EXPIRED = 'reservation_expired'
    WALK_IN_JOINED = 'walk_in_joined'


def render_message(event: str, payload: Dict[str, Any]) -> str:
    """Текст уведомления по событию"""
    details = (
        f"📅 {payload.get('date')} {payload.get('time')}\n"
        f"🍽 Стол №{payload.get('table_number')}\n"
        f"👥 Гостей: {payload.get('party_size')}"
    )

    if event == Event.RESERVATION_CREATED:
        return (
            f"📌 Новая бронь #{payload.get('reservation_id')}\n\n"
            f"👤 Клиент: {payload.get('client_id')}\n"
            f"{details}\n"
            f"📝 {payload.get('notes') or 'без комментариев'}"
        )
    if event == Event.RESERVATION_APPROVED:
        return f"✅ Ваша бронь #{payload.get('reservation_id')} подтверждена\n\n{details}"
    if event == Event.RESERVATION_REJECTED:
        return (
            f"❌ Ваша бронь #{payload.get('reservation_id')} отклонена\n\n"
            f"{details}\n\n"
            f"Причина: {payload.get('reason')}"
        )
    if event == Event.RESERVATION_CANCELLED:
        return f"🗑 Клиент {payload.get('client_id')} отменил бронь #{payload.get('reservation_id')}\n\n{details}"
    if event == Event.RESERVATION_ACTIVATED:
        return (
            f"🔔 Скоро ваше время! Стол №{payload.get('table_number')} ждёт вас.\n"
            f"Отсканируйте код на столе или отправьте /arrive {payload.get('table_number')}"
        )
    if event == Event.RESERVATION_EXPIRED:
        return (
            f"⌛️ Бронь #{payload.get('reservation_id')} аннулирована: "
            f"вы не пришли в течение {settings.EXPIRY_WINDOW_MINUTES} минут\n\n{details}"
        )
    if event == Event.WALK_IN_JOINED:
        return (
            f"🕐 Новый гость в листе ожидания #{payload.get('entry_id')}\n\n"
            f"👤 Клиент: {payload.get('client_id')}\n"
            f"👥 Гостей: {payload.get('party_size')}\n"
            f"🍽 Тип стола: {payload.get('preferred_table_type') or 'любой'}\n"
            f"📍 Позиция: {payload.get('position')}"
        )
    return f"ℹ️ {event}: {payload}"


def get_recipients(event: str, payload: Dict[str, Any]) -> List[int]:
    """Кому отправлять уведомление"""
    if event in (Event.RESERVATION_CREATED, Event.RESERVATION_CANCELLED):
        return list(dict.fromkeys(settings.OWNER_IDS + settings.SUPERVISOR_IDS))
    if event == Event.WALK_IN_JOINED:
        return list(settings.MAITRE_IDS)
    client_id = payload.get('client_id')
    return [client_id] if client_id is not None else []


class LoggingNotifier:
    """Уведомления только в лог (когда бот не настроен)"""

    async def notify(self, event: str, payload: Dict[str, Any]):
        logger.info(f"Уведомление {event}: {payload}")


class TelegramNotifier:
    """Уведомления через Telegram-бота"""

    def __init__(self, bot):
        self.bot = bot

    async def notify(self, event: str, payload: Dict[str, Any]):
        text = render_message(event, payload)
        reply_markup = None
        if event == Event.RESERVATION_CREATED:
            reply_markup = get_decision_keyboard(payload['reservation_id'])

        for chat_id in get_recipients(event, payload):
            try:
                await self.bot.send_message(chat_id, text, reply_markup=reply_markup)
            except Exception as e:
                logger.error(f"Не удалось отправить уведомление {event} пользователю {chat_id}: {e}")


async def dispatch(notifier: Optional[object], event: str, payload: Dict[str, Any]):
    """Отправка уведомления без влияния на исход операции"""
    if notifier is None:
        return
    try:
        await notifier.notify(event, payload)
    except Exception as e:
        logger.error(f"Ошибка рассылки уведомления {event}: {e}", exc_info=True)
