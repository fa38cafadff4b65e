"""
Обработчики команд и сообщений клиентов
"""
import logging

from aiogram import Router, F
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, CallbackQuery

from config import settings
from database.models import ReservationStatus
from database.repository import TableRepository
from keyboards.keyboards import (
    TABLE_TYPE_LABELS, get_main_menu_keyboard, get_table_types_keyboard,
    get_reservations_keyboard, get_reservation_actions_keyboard, get_cancel_keyboard
)
from services.errors import AllocationError
from services.identity import actor_for_user
from states.booking_states import JoinQueueStates
from utils.time_utils import format_date, format_time

logger = logging.getLogger(__name__)
router = Router()


def main_menu(user_id: int):
    return get_main_menu_keyboard(settings.is_staff(user_id))


@router.message(Command("start"))
async def cmd_start(message: Message, state: FSMContext):
    """Обработка команды /start"""
    await state.clear()

    await message.answer(
        f"👋 Добро пожаловать!\n\n"
        f"Здесь вы можете:\n"
        f"🕐 Встать в лист ожидания\n"
        f"📍 Узнать своё место в очереди\n"
        f"📋 Посмотреть и отменить свои брони\n"
        f"🍽 Отметиться у стола: /arrive <номер стола>\n\n"
        f"Выберите действие:",
        reply_markup=main_menu(message.from_user.id)
    )


# ---------- лист ожидания ----------

@router.message(Command("join"))
@router.message(F.text == "🕐 Встать в очередь")
async def start_join(message: Message, state: FSMContext):
    """Начало записи в лист ожидания"""
    await state.clear()
    await message.answer(
        f"👥 Сколько вас будет? ({settings.MIN_PARTY_SIZE}-{settings.MAX_PARTY_SIZE})",
        reply_markup=get_cancel_keyboard()
    )
    await state.set_state(JoinQueueStates.entering_party_size)


@router.message(JoinQueueStates.entering_party_size, F.text)
async def process_party_size(message: Message, state: FSMContext):
    """Обработка количества гостей"""
    text = message.text.strip()
    if not text.isdigit() or not settings.MIN_PARTY_SIZE <= int(text) <= settings.MAX_PARTY_SIZE:
        await message.answer(
            f"⚠️ Введите число от {settings.MIN_PARTY_SIZE} до {settings.MAX_PARTY_SIZE}"
        )
        return

    await state.update_data(party_size=int(text))
    await message.answer("🍽 Какой стол вы предпочитаете?", reply_markup=get_table_types_keyboard())
    await state.set_state(JoinQueueStates.choosing_table_type)


@router.callback_query(F.data.startswith("type:"), JoinQueueStates.choosing_table_type)
async def process_table_type(callback: CallbackQuery, state: FSMContext, waiting_list_service):
    """Тип стола выбран - записываем в очередь"""
    table_type = callback.data.split(":")[1]
    preferred_type = None if table_type == "any" else table_type
    data = await state.get_data()
    await state.clear()

    try:
        entry = await waiting_list_service.join(
            callback.from_user.id, data['party_size'], preferred_type
        )
        info = waiting_list_service.position(callback.from_user.id)
    except AllocationError as e:
        await callback.message.edit_text(f"⚠️ {e.message}")
        await callback.answer()
        return

    await callback.message.edit_text(
        f"✅ Вы в листе ожидания (запись #{entry.id})\n\n"
        f"👥 Гостей: {entry.party_size}\n"
        f"🍽 Стол: {TABLE_TYPE_LABELS.get(preferred_type, 'любой')}\n"
        f"📍 Ваше место: {info.position}"
    )
    await callback.answer()


@router.message(Command("position"))
@router.message(F.text == "📍 Моя очередь")
async def my_position(message: Message, waiting_list_service):
    """Место клиента в очереди"""
    try:
        info = waiting_list_service.position(message.from_user.id)
    except AllocationError as e:
        await message.answer(f"ℹ️ {e.message}", reply_markup=main_menu(message.from_user.id))
        return

    text = f"📍 Ваше место в очереди: {info.position}"
    if info.estimated_wait is not None:
        text += f"\n⏱ Примерное ожидание: {info.estimated_wait} мин"
    text += "\n\nЧтобы выйти из очереди: /leave"
    await message.answer(text)


@router.message(Command("leave"))
async def cmd_leave(message: Message, waiting_list_service):
    """Выход из листа ожидания"""
    actor = actor_for_user(message.from_user.id)
    try:
        info = waiting_list_service.position(actor.user_id)
        waiting_list_service.cancel(info.entry.id, actor)
    except AllocationError as e:
        await message.answer(f"⚠️ {e.message}")
        return

    await message.answer("✅ Вы вышли из листа ожидания", reply_markup=main_menu(actor.user_id))


@router.message(Command("arrive"))
async def cmd_arrive(message: Message, command: CommandObject, waiting_list_service):
    """Команда /arrive <номер стола> - гость у стола"""
    if not command.args or not command.args.strip().isdigit():
        await message.answer("⚠️ Использование: /arrive <номер стола>\n\nПример: /arrive 5")
        return

    try:
        table = waiting_list_service.confirm_arrival(
            message.from_user.id, number=int(command.args.strip())
        )
    except AllocationError as e:
        await message.answer(f"⚠️ {e.message}")
        return

    await message.answer(f"🍽 Добро пожаловать! Стол №{table.number} ваш. Приятного вечера!")


# ---------- брони ----------

@router.message(Command("my"))
@router.message(F.text == "📋 Мои брони")
async def my_reservations(message: Message, reservation_service):
    """Просмотр броней клиента"""
    reservations = [
        r for r in reservation_service.get_user_reservations(message.from_user.id)
        if r.status in ReservationStatus.ACTIVE
    ]

    if not reservations:
        await message.answer(
            "У вас пока нет активных броней.",
            reply_markup=main_menu(message.from_user.id)
        )
        return

    await message.answer("📋 Ваши брони:", reply_markup=get_reservations_keyboard(reservations))


@router.callback_query(F.data.startswith("show_reservation:"))
async def show_reservation_details(callback: CallbackQuery, reservation_service):
    """Детали брони"""
    reservation_id = int(callback.data.split(":")[1])
    try:
        reservation = reservation_service.get_reservation(
            reservation_id, actor_for_user(callback.from_user.id)
        )
    except AllocationError:
        await callback.answer("Бронь не найдена", show_alert=True)
        return

    table = TableRepository.get_table_by_id(reservation.table_id)
    status = "✅ подтверждена" if reservation.status == ReservationStatus.APPROVED else "⏳ ждёт подтверждения"

    await callback.message.edit_text(
        f"📋 Бронь #{reservation.id}\n\n"
        f"📅 {format_date(reservation.date)} {format_time(reservation.time)}\n"
        f"🍽 Стол №{table.number if table else reservation.table_id}\n"
        f"👥 Гостей: {reservation.party_size}\n"
        f"Статус: {status}",
        reply_markup=get_reservation_actions_keyboard(reservation)
    )
    await callback.answer()


@router.callback_query(F.data.startswith("cancel_reservation:"))
async def cancel_reservation(callback: CallbackQuery, reservation_service):
    """Отмена брони клиентом"""
    reservation_id = int(callback.data.split(":")[1])
    try:
        await reservation_service.cancel(reservation_id, callback.from_user.id)
    except AllocationError as e:
        await callback.answer(f"⚠️ {e.message}", show_alert=True)
        return

    await callback.message.edit_text(f"✅ Бронь #{reservation_id} отменена")
    await callback.answer()


@router.message(Command("cancel_reservation"))
async def cmd_cancel_reservation(message: Message, command: CommandObject, reservation_service):
    """Команда /cancel_reservation <id>"""
    if not command.args or not command.args.strip().isdigit():
        await message.answer(
            "⚠️ Использование: /cancel_reservation <id>\n\nПример: /cancel_reservation 123"
        )
        return

    reservation_id = int(command.args.strip())
    try:
        await reservation_service.cancel(reservation_id, message.from_user.id)
    except AllocationError as e:
        await message.answer(f"⚠️ {e.message}")
        return

    await message.answer(f"✅ Бронь #{reservation_id} отменена")


@router.callback_query(F.data == "my_reservations")
async def callback_my_reservations(callback: CallbackQuery, reservation_service):
    """Возврат к списку броней"""
    reservations = [
        r for r in reservation_service.get_user_reservations(callback.from_user.id)
        if r.status in ReservationStatus.ACTIVE
    ]

    if not reservations:
        await callback.message.edit_text("У вас пока нет активных броней.")
        await callback.answer()
        return

    await callback.message.edit_text("📋 Ваши брони:", reply_markup=get_reservations_keyboard(reservations))
    await callback.answer()


# ---------- навигация ----------

@router.callback_query(F.data == "main_menu")
async def callback_main_menu(callback: CallbackQuery, state: FSMContext):
    """Возврат в главное меню"""
    await state.clear()
    await callback.message.answer("🏠 Главное меню", reply_markup=main_menu(callback.from_user.id))
    await callback.answer()


@router.callback_query(F.data == "cancel")
async def cancel_process(callback: CallbackQuery, state: FSMContext):
    """Отмена текущего действия"""
    await state.clear()

    await callback.message.edit_text("❌ Действие отменено")
    await callback.message.answer("Выберите действие:", reply_markup=main_menu(callback.from_user.id))
    await callback.answer()
