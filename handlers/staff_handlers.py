"""
Обработчики команд персонала
"""
import logging
from typing import List

from aiogram import Router, F
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, CallbackQuery

from database.models import Reservation, ReservationStatus
from database.repository import TableRepository
from keyboards.keyboards import get_staff_keyboard, get_queue_keyboard, get_cancel_keyboard
from services.errors import AllocationError
from services.identity import ADMIN_ROLES, HOST_ROLES, STAFF_ROLES, actor_for_user
from states.booking_states import DecisionStates
from utils.time_utils import format_date, format_datetime, format_time

logger = logging.getLogger(__name__)
router = Router()

# Лимит Telegram на длину сообщения с запасом
MESSAGE_LIMIT = 4000

# Причина отклонения - любой текст, кроме команд
REASON_TEXT = F.text & ~F.text.startswith("/")

STATUS_LABELS = {
    ReservationStatus.PENDING: "⏳ ждёт решения",
    ReservationStatus.APPROVED: "✅ одобрена",
    ReservationStatus.REJECTED: "❌ отклонена",
    ReservationStatus.CANCELLED: "🗑 отменена",
    ReservationStatus.COMPLETED: "🍽 гость пришёл",
}


def has_role(user_id: int, roles) -> bool:
    """Проверка роли сотрудника"""
    return actor_for_user(user_id).role in roles


def split_message(header: str, blocks: List[str], footer: str = "") -> List[str]:
    """Разбиение длинного текста на сообщения"""
    parts = []
    current = header

    for block in blocks:
        if len(current) + len(block) > MESSAGE_LIMIT:
            parts.append(current)
            current = block
        else:
            current += block

    parts.append(current + footer)
    return parts


@router.message(F.text == "⚙️ Панель персонала")
async def staff_panel(message: Message):
    """Открытие панели персонала"""
    if not has_role(message.from_user.id, STAFF_ROLES):
        await message.answer("⚠️ У вас нет доступа к панели персонала")
        return

    await message.answer(
        "⚙️ Панель персонала\n\nВыберите действие:",
        reply_markup=get_staff_keyboard()
    )


# ---------- брони на сегодня ----------

@router.message(Command("today"))
async def cmd_today(message: Message, reservation_service):
    """Команда /today - брони на текущий вечер"""
    if not has_role(message.from_user.id, STAFF_ROLES):
        await message.answer("⚠️ У вас нет доступа к этой команде")
        return

    await show_today_reservations(message, reservation_service)


@router.callback_query(F.data == "staff_today")
async def callback_today(callback: CallbackQuery, reservation_service):
    """Callback для броней на сегодня"""
    if not has_role(callback.from_user.id, STAFF_ROLES):
        await callback.answer("⚠️ У вас нет доступа", show_alert=True)
        return

    await show_today_reservations(callback.message, reservation_service)
    await callback.answer()


def format_reservation(reservation: Reservation) -> str:
    table = TableRepository.get_table_by_id(reservation.table_id)
    table_name = f"Стол №{table.number}" if table else f"Стол #{reservation.table_id}"

    return (
        f"🔹 Бронь #{reservation.id} ({STATUS_LABELS.get(reservation.status, reservation.status)})\n"
        f"   🕐 {format_date(reservation.date)} {format_time(reservation.time)}\n"
        f"   🍽 {table_name}\n"
        f"   👥 {reservation.party_size}\n"
        f"   👤 {reservation.client_id}\n\n"
    )


async def show_today_reservations(message: Message, reservation_service):
    """Показать брони на сегодня"""
    reservations = reservation_service.get_today_reservations()

    if not reservations:
        await message.answer("📋 На сегодня нет бронирований")
        return

    parts = split_message(
        "📋 Бронирования на сегодня:\n\n",
        [format_reservation(r) for r in reservations],
        f"Всего броней: {len(reservations)}"
    )
    for part in parts:
        await message.answer(part)


# ---------- решение по брони ----------

@router.callback_query(F.data.startswith("approve:"))
async def approve_reservation(callback: CallbackQuery, reservation_service):
    """Одобрение брони"""
    if not has_role(callback.from_user.id, ADMIN_ROLES):
        await callback.answer("⚠️ Решение принимает владелец или управляющий", show_alert=True)
        return

    reservation_id = int(callback.data.split(":")[1])
    try:
        reservation = await reservation_service.decide(
            reservation_id, callback.from_user.id, ReservationStatus.APPROVED
        )
    except AllocationError as e:
        await callback.answer(f"⚠️ {e.message}", show_alert=True)
        return

    await callback.message.edit_text(
        f"{callback.message.text}\n\n✅ Одобрено ({format_datetime(reservation.approved_at)})"
    )
    await callback.answer()


@router.callback_query(F.data.startswith("reject:"))
async def reject_reservation(callback: CallbackQuery, state: FSMContext):
    """Отклонение брони: сначала спрашиваем причину"""
    if not has_role(callback.from_user.id, ADMIN_ROLES):
        await callback.answer("⚠️ Решение принимает владелец или управляющий", show_alert=True)
        return

    reservation_id = int(callback.data.split(":")[1])
    await state.update_data(reservation_id=reservation_id)
    await state.set_state(DecisionStates.entering_reason)

    await callback.message.answer(
        f"✏️ Укажите причину отклонения брони #{reservation_id}:",
        reply_markup=get_cancel_keyboard()
    )
    await callback.answer()


@router.message(DecisionStates.entering_reason, REASON_TEXT)
async def process_reject_reason(message: Message, state: FSMContext, reservation_service):
    """Причина отклонения получена"""
    data = await state.get_data()
    await state.clear()

    try:
        reservation = await reservation_service.decide(
            data['reservation_id'], message.from_user.id,
            ReservationStatus.REJECTED, message.text
        )
    except AllocationError as e:
        await message.answer(f"⚠️ {e.message}")
        return

    await message.answer(f"❌ Бронь #{reservation.id} отклонена. Клиент получит уведомление.")


# ---------- лист ожидания ----------

@router.message(Command("queue"))
async def cmd_queue(message: Message, waiting_list_service):
    """Команда /queue - лист ожидания"""
    if not has_role(message.from_user.id, HOST_ROLES):
        await message.answer("⚠️ У вас нет доступа к этой команде")
        return

    await show_queue(message, waiting_list_service)


@router.callback_query(F.data == "staff_queue")
async def callback_queue(callback: CallbackQuery, waiting_list_service):
    if not has_role(callback.from_user.id, HOST_ROLES):
        await callback.answer("⚠️ У вас нет доступа", show_alert=True)
        return

    await show_queue(callback.message, waiting_list_service)
    await callback.answer()


async def show_queue(message: Message, waiting_list_service):
    """Показать очередь"""
    summary = waiting_list_service.get_waiting_list()

    if not summary.entries:
        await message.answer("🕐 Лист ожидания пуст")
        return

    lines = []
    for position, entry in enumerate(summary.entries, start=1):
        source = f"бронь #{entry.reservation_id}" if entry.reservation_id else "без брони"
        lines.append(
            f"{position}. #{entry.id} 👤 {entry.client_id}, 👥 {entry.party_size}, "
            f"{entry.preferred_table_type or 'любой'} ({source}), "
            f"с {format_time(entry.joined_at.time())}\n"
        )

    footer = f"\nВсего: {summary.total}"
    if summary.average_wait is not None:
        footer += f"\nСреднее ожидание сегодня: {summary.average_wait} мин"

    await message.answer(
        "🕐 Лист ожидания:\n\n" + "".join(lines) + footer,
        reply_markup=get_queue_keyboard(summary.entries)
    )


@router.callback_query(F.data.startswith("no_show:"))
async def callback_no_show(callback: CallbackQuery, waiting_list_service):
    """Гость из очереди не пришёл"""
    if not has_role(callback.from_user.id, HOST_ROLES):
        await callback.answer("⚠️ У вас нет доступа", show_alert=True)
        return

    entry_id = int(callback.data.split(":")[1])
    try:
        waiting_list_service.mark_no_show(entry_id)
    except AllocationError as e:
        await callback.answer(f"⚠️ {e.message}", show_alert=True)
        return

    await callback.answer(f"Запись #{entry_id} отмечена: не пришёл")
    await show_queue(callback.message, waiting_list_service)


@router.message(Command("assign"))
async def cmd_assign(message: Message, command: CommandObject, waiting_list_service):
    """Команда /assign <id записи> <номер стола>"""
    if not has_role(message.from_user.id, HOST_ROLES):
        await message.answer("⚠️ У вас нет доступа к этой команде")
        return

    args = (command.args or "").split()
    if len(args) != 2 or not all(arg.isdigit() for arg in args):
        await message.answer(
            "⚠️ Использование: /assign <id записи> <номер стола>\n\n"
            "Пример: /assign 12 3"
        )
        return

    entry_id, number = int(args[0]), int(args[1])
    try:
        table = TableRepository.get_table_by_number(number)
        if table is None:
            await message.answer(f"⚠️ Стол №{number} не найден")
            return
        waiting_list_service.assign_table(entry_id, table.id)
    except AllocationError as e:
        await message.answer(f"⚠️ {e.message}")
        return

    await message.answer(f"✅ Запись #{entry_id} посажена за стол №{number}")


# ---------- столы ----------

@router.message(Command("free"))
async def cmd_free(message: Message, command: CommandObject, waiting_list_service):
    """Команда /free <номер стола>"""
    if not has_role(message.from_user.id, STAFF_ROLES):
        await message.answer("⚠️ У вас нет доступа к этой команде")
        return

    if not command.args or not command.args.strip().isdigit():
        await message.answer("⚠️ Использование: /free <номер стола>\n\nПример: /free 3")
        return

    number = int(command.args.strip())
    table = TableRepository.get_table_by_number(number)
    if table is None:
        await message.answer(f"⚠️ Стол №{number} не найден")
        return

    try:
        waiting_list_service.free_table(table.id)
    except AllocationError as e:
        await message.answer(f"⚠️ {e.message}")
        return

    await message.answer(f"✅ Стол №{number} свободен")


@router.message(Command("tables"))
async def cmd_tables(message: Message, table_registry):
    """Команда /tables - состояние зала"""
    if not has_role(message.from_user.id, STAFF_ROLES):
        await message.answer("⚠️ У вас нет доступа к этой команде")
        return

    await show_tables(message, table_registry)


@router.callback_query(F.data == "staff_tables")
async def callback_tables(callback: CallbackQuery, table_registry):
    if not has_role(callback.from_user.id, STAFF_ROLES):
        await callback.answer("⚠️ У вас нет доступа", show_alert=True)
        return

    await show_tables(callback.message, table_registry)
    await callback.answer()


async def show_tables(message: Message, table_registry):
    status = table_registry.get_tables_status()

    text = "🍽 Столы:\n\n"
    for table in status.tables:
        if table.occupied:
            state = f"🔴 занят ({table.claimant_id})"
        elif table.claimant_id is not None:
            state = f"🟡 ждёт гостя ({table.claimant_id})"
        else:
            state = "🟢 свободен"
        text += f"№{table.number} ({table.type}, {table.capacity} мест): {state}\n"

    text += (
        f"\nЗанято: {status.occupied}, закреплено: {status.assigned}, "
        f"свободно: {status.available}\n"
        f"Мест: {status.occupied_capacity + status.assigned_capacity} из {status.total_capacity}"
    )
    await message.answer(text)


# ---------- обработка броней ----------

@router.message(Command("sweep"))
async def cmd_sweep(message: Message, sweeper):
    """Команда /sweep - обработать брони прямо сейчас"""
    if not has_role(message.from_user.id, STAFF_ROLES):
        await message.answer("⚠️ У вас нет доступа к этой команде")
        return

    await run_sweep(message, sweeper)


@router.callback_query(F.data == "staff_sweep")
async def callback_sweep(callback: CallbackQuery, sweeper):
    if not has_role(callback.from_user.id, STAFF_ROLES):
        await callback.answer("⚠️ У вас нет доступа", show_alert=True)
        return

    await run_sweep(callback.message, sweeper)
    await callback.answer()


async def run_sweep(message: Message, sweeper):
    report = await sweeper.run()

    text = (
        f"🔄 Брони обработаны\n\n"
        f"Аннулировано: {len(report.expired)}\n"
        f"Активировано: {len(report.activated)}\n"
        f"Уже в очереди: {len(report.already_active)}\n"
        f"Ждут освобождения стола: {len(report.deferred)}"
    )
    if report.failed:
        text += f"\n⚠️ Ошибки: {', '.join(f'#{i}' for i in report.failed)}"
    await message.answer(text)
