"""
Клавиатуры для Telegram бота
"""
from typing import List

from aiogram.types import InlineKeyboardMarkup, ReplyKeyboardMarkup, KeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from database.models import Reservation, ReservationStatus, TableType, WaitingListEntry
from utils.time_utils import format_date, format_time

TABLE_TYPE_LABELS = {
    TableType.STANDARD: "🍽 Обычный",
    TableType.VIP: "🥂 VIP",
    TableType.ACCESSIBLE: "♿️ Доступный",
}


def get_main_menu_keyboard(is_staff: bool = False) -> ReplyKeyboardMarkup:
    """Главное меню"""
    buttons = [
        [KeyboardButton(text="🕐 Встать в очередь")],
        [KeyboardButton(text="📍 Моя очередь"), KeyboardButton(text="📋 Мои брони")],
    ]

    if is_staff:
        buttons.append([KeyboardButton(text="⚙️ Панель персонала")])

    return ReplyKeyboardMarkup(keyboard=buttons, resize_keyboard=True)


def get_table_types_keyboard() -> InlineKeyboardMarkup:
    """Клавиатура выбора типа стола"""
    builder = InlineKeyboardBuilder()

    for table_type, label in TABLE_TYPE_LABELS.items():
        builder.button(text=label, callback_data=f"type:{table_type}")

    builder.button(text="🍽 Любой стол", callback_data="type:any")
    builder.button(text="❌ Отмена", callback_data="cancel")
    builder.adjust(3, 1, 1)

    return builder.as_markup()


def get_reservations_keyboard(reservations: List[Reservation]) -> InlineKeyboardMarkup:
    """Клавиатура списка бронирований клиента"""
    builder = InlineKeyboardBuilder()

    for reservation in reservations:
        text = f"🗓 {format_date(reservation.date)} {format_time(reservation.time)}"
        builder.button(text=text, callback_data=f"show_reservation:{reservation.id}")

    builder.button(text="🏠 Главное меню", callback_data="main_menu")
    builder.adjust(1)

    return builder.as_markup()


def get_reservation_actions_keyboard(reservation: Reservation) -> InlineKeyboardMarkup:
    """Клавиатура действий с бронью"""
    builder = InlineKeyboardBuilder()

    if reservation.status in ReservationStatus.ACTIVE:
        builder.button(
            text="🗑 Отменить бронь",
            callback_data=f"cancel_reservation:{reservation.id}"
        )
    builder.button(text="◀️ Назад", callback_data="my_reservations")
    builder.adjust(1)

    return builder.as_markup()


def get_decision_keyboard(reservation_id: int) -> InlineKeyboardMarkup:
    """Кнопки одобрения/отклонения новой брони"""
    builder = InlineKeyboardBuilder()

    builder.button(text="✅ Одобрить", callback_data=f"approve:{reservation_id}")
    builder.button(text="❌ Отклонить", callback_data=f"reject:{reservation_id}")
    builder.adjust(2)

    return builder.as_markup()


def get_staff_keyboard() -> InlineKeyboardMarkup:
    """Клавиатура панели персонала"""
    builder = InlineKeyboardBuilder()

    builder.button(text="📋 Брони на сегодня", callback_data="staff_today")
    builder.button(text="🕐 Лист ожидания", callback_data="staff_queue")
    builder.button(text="🍽 Столы", callback_data="staff_tables")
    builder.button(text="🔄 Обработать брони", callback_data="staff_sweep")
    builder.button(text="🏠 Главное меню", callback_data="main_menu")
    builder.adjust(1)

    return builder.as_markup()


def get_queue_keyboard(entries: List[WaitingListEntry]) -> InlineKeyboardMarkup:
    """Кнопки "не пришёл" для записей листа ожидания"""
    builder = InlineKeyboardBuilder()

    for position, entry in enumerate(entries, start=1):
        builder.button(
            text=f"🚫 {position}. не пришёл (#{entry.id})",
            callback_data=f"no_show:{entry.id}"
        )

    builder.adjust(1)
    return builder.as_markup()


def get_cancel_keyboard() -> InlineKeyboardMarkup:
    """Простая клавиатура отмены"""
    builder = InlineKeyboardBuilder()
    builder.button(text="❌ Отмена", callback_data="cancel")
    return builder.as_markup()
