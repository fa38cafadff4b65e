"""
Тесты обработчиков Telegram: бот подменяется AsyncMock, сервисы настоящие
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.filters import CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage

from config import settings
from database.models import ReservationStatus, WaitingStatus
from database.repository import ReservationRepository, TableRepository, WaitingListRepository
from handlers import client_handlers, staff_handlers
from services.notifications import Event
from states.booking_states import DecisionStates
from tests.conftest import SERVICE_DAY, hhmm

OWNER, MAITRE, WAITER, CLIENT = 1, 3, 4, 100


@pytest.fixture(autouse=True)
def roles(monkeypatch):
    monkeypatch.setattr(settings, 'OWNER_IDS', [OWNER])
    monkeypatch.setattr(settings, 'SUPERVISOR_IDS', [])
    monkeypatch.setattr(settings, 'MAITRE_IDS', [MAITRE])
    monkeypatch.setattr(settings, 'WAITER_IDS', [WAITER])


@pytest.fixture
def state():
    return FSMContext(storage=MemoryStorage(), key=StorageKey(bot_id=1, chat_id=OWNER, user_id=OWNER))


def make_message(user_id, text=None):
    message = AsyncMock()
    message.from_user.id = user_id
    message.text = text
    return message


def make_callback(user_id, data):
    callback = AsyncMock()
    callback.from_user.id = user_id
    callback.data = data
    callback.message.text = "🆕 Новая бронь"
    return callback


def command(name, args=None):
    return CommandObject(prefix="/", command=name, args=args)


def answer_text(message):
    return message.answer.call_args.args[0]


def reservation_status(reservation_id):
    return ReservationRepository.get_reservation_by_id(reservation_id).status


class TestDecisionHandlers:
    """Одобрение и отклонение броней из уведомления"""

    async def test_reject_asks_reason_then_rejects(self, state, reservation_service, notifier, make_table):
        table = make_table()
        reservation = await reservation_service.create(CLIENT, table.id, SERVICE_DAY, hhmm("20:30"), 2)

        await staff_handlers.reject_reservation(make_callback(OWNER, f"reject:{reservation.id}"), state)
        assert await state.get_state() == DecisionStates.entering_reason.state

        message = make_message(OWNER, "Закрытое мероприятие")
        await staff_handlers.process_reject_reason(message, state, reservation_service)

        assert await state.get_state() is None
        stored = ReservationRepository.get_reservation_by_id(reservation.id)
        assert stored.status == ReservationStatus.REJECTED
        assert stored.rejection_reason == "Закрытое мероприятие"
        assert notifier.of(Event.RESERVATION_REJECTED)[0]['reason'] == "Закрытое мероприятие"
        assert "отклонена" in answer_text(message)

    async def test_blank_reason_keeps_reservation_pending(self, state, reservation_service, make_table):
        table = make_table()
        reservation = await reservation_service.create(CLIENT, table.id, SERVICE_DAY, hhmm("20:30"), 2)
        await state.update_data(reservation_id=reservation.id)

        message = make_message(OWNER, "   ")
        await staff_handlers.process_reject_reason(message, state, reservation_service)

        assert reservation_status(reservation.id) == ReservationStatus.PENDING
        assert answer_text(message) == "⚠️ Укажите причину отклонения"

    def test_commands_are_not_taken_as_reason(self):
        assert not staff_handlers.REASON_TEXT.resolve(SimpleNamespace(text="/today"))
        assert not staff_handlers.REASON_TEXT.resolve(SimpleNamespace(text="/start"))
        assert staff_handlers.REASON_TEXT.resolve(SimpleNamespace(text="Нет мест"))

    async def test_non_admin_cannot_approve(self, reservation_service, make_table):
        table = make_table()
        reservation = await reservation_service.create(CLIENT, table.id, SERVICE_DAY, hhmm("20:30"), 2)
        callback = make_callback(MAITRE, f"approve:{reservation.id}")

        await staff_handlers.approve_reservation(callback, reservation_service)

        assert reservation_status(reservation.id) == ReservationStatus.PENDING
        assert callback.answer.call_args.kwargs['show_alert'] is True
        callback.message.edit_text.assert_not_awaited()

    async def test_non_admin_cannot_start_rejection(self, state):
        callback = make_callback(WAITER, "reject:1")

        await staff_handlers.reject_reservation(callback, state)

        assert await state.get_state() is None

    async def test_owner_approves(self, reservation_service, make_table):
        table = make_table()
        reservation = await reservation_service.create(CLIENT, table.id, SERVICE_DAY, hhmm("20:30"), 2)
        callback = make_callback(OWNER, f"approve:{reservation.id}")

        await staff_handlers.approve_reservation(callback, reservation_service)

        assert reservation_status(reservation.id) == ReservationStatus.APPROVED
        edited = callback.message.edit_text.call_args.args[0]
        assert edited.startswith("🆕 Новая бронь")
        assert "✅ Одобрено" in edited

    async def test_second_decision_reported(self, reservation_service, make_table):
        table = make_table()
        reservation = await reservation_service.create(CLIENT, table.id, SERVICE_DAY, hhmm("20:30"), 2)
        await staff_handlers.approve_reservation(make_callback(OWNER, f"approve:{reservation.id}"), reservation_service)

        callback = make_callback(OWNER, f"approve:{reservation.id}")
        await staff_handlers.approve_reservation(callback, reservation_service)

        assert "уже обработана" in callback.answer.call_args.args[0]


class TestHallHandlers:
    """Рассадка и освобождение столов персоналом"""

    async def test_assign_unknown_table(self, waiting_list_service):
        entry = await waiting_list_service.join(CLIENT, 2)
        message = make_message(MAITRE)

        await staff_handlers.cmd_assign(message, command("assign", f"{entry.id} 99"), waiting_list_service)

        assert answer_text(message) == "⚠️ Стол №99 не найден"
        assert WaitingListRepository.get_entry_by_id(entry.id).status == WaitingStatus.WAITING

    async def test_assign_seats_entry(self, waiting_list_service, make_table):
        table = make_table(number=5)
        entry = await waiting_list_service.join(CLIENT, 2)
        message = make_message(MAITRE)

        await staff_handlers.cmd_assign(message, command("assign", f"{entry.id} 5"), waiting_list_service)

        assert answer_text(message) == f"✅ Запись #{entry.id} посажена за стол №5"
        assert TableRepository.get_table_by_id(table.id).claimant_id == CLIENT

    async def test_assign_forbidden_for_waiter(self, waiting_list_service, make_table):
        make_table(number=5)
        entry = await waiting_list_service.join(CLIENT, 2)
        message = make_message(WAITER)

        await staff_handlers.cmd_assign(message, command("assign", f"{entry.id} 5"), waiting_list_service)

        assert answer_text(message) == "⚠️ У вас нет доступа к этой команде"
        assert WaitingListRepository.get_entry_by_id(entry.id).status == WaitingStatus.WAITING

    async def test_assign_usage(self, waiting_list_service):
        message = make_message(MAITRE)
        await staff_handlers.cmd_assign(message, command("assign", "12"), waiting_list_service)
        assert answer_text(message).startswith("⚠️ Использование: /assign")

    async def test_free_by_waiter(self, waiting_list_service, make_table):
        table = make_table(number=3)
        entry = await waiting_list_service.join(CLIENT, 2)
        waiting_list_service.assign_table(entry.id, table.id)
        message = make_message(WAITER)

        await staff_handlers.cmd_free(message, command("free", "3"), waiting_list_service)

        assert answer_text(message) == "✅ Стол №3 свободен"
        assert TableRepository.get_table_by_id(table.id).is_free

    async def test_free_forbidden_for_client(self, waiting_list_service, make_table):
        make_table(number=3)
        message = make_message(CLIENT)
        await staff_handlers.cmd_free(message, command("free", "3"), waiting_list_service)
        assert answer_text(message) == "⚠️ У вас нет доступа к этой команде"


class TestClientHandlers:
    """Команды гостя"""

    async def test_arrive_at_assigned_table(self, waiting_list_service, make_table):
        table = make_table(number=5)
        entry = await waiting_list_service.join(CLIENT, 2)
        waiting_list_service.assign_table(entry.id, table.id)
        message = make_message(CLIENT)

        await client_handlers.cmd_arrive(message, command("arrive", "5"), waiting_list_service)

        assert "Стол №5 ваш" in answer_text(message)
        assert TableRepository.get_table_by_id(table.id).occupied

    async def test_arrive_at_foreign_table(self, waiting_list_service, make_table):
        table = make_table(number=5)
        entry = await waiting_list_service.join(200, 2)
        waiting_list_service.assign_table(entry.id, table.id)
        message = make_message(CLIENT)

        await client_handlers.cmd_arrive(message, command("arrive", "5"), waiting_list_service)

        assert answer_text(message).startswith("⚠️")
        assert not TableRepository.get_table_by_id(table.id).occupied

    async def test_arrive_usage(self, waiting_list_service):
        message = make_message(CLIENT)
        await client_handlers.cmd_arrive(message, command("arrive"), waiting_list_service)
        assert answer_text(message).startswith("⚠️ Использование: /arrive")

    async def test_leave(self, waiting_list_service):
        entry = await waiting_list_service.join(CLIENT, 2)
        message = make_message(CLIENT)

        await client_handlers.cmd_leave(message, waiting_list_service)

        assert answer_text(message) == "✅ Вы вышли из листа ожидания"
        assert WaitingListRepository.get_entry_by_id(entry.id).status == WaitingStatus.CANCELLED

    async def test_leave_without_entry(self, waiting_list_service):
        message = make_message(CLIENT)
        await client_handlers.cmd_leave(message, waiting_list_service)
        assert answer_text(message).startswith("⚠️")

    async def test_cancel_reservation_command(self, reservation_service, make_table):
        table = make_table()
        reservation = await reservation_service.create(CLIENT, table.id, SERVICE_DAY, hhmm("20:30"), 2)

        stranger = make_message(200)
        await client_handlers.cmd_cancel_reservation(
            stranger, command("cancel_reservation", str(reservation.id)), reservation_service
        )
        assert answer_text(stranger).startswith("⚠️")
        assert reservation_status(reservation.id) == ReservationStatus.PENDING

        owner = make_message(CLIENT)
        await client_handlers.cmd_cancel_reservation(
            owner, command("cancel_reservation", str(reservation.id)), reservation_service
        )
        assert answer_text(owner) == f"✅ Бронь #{reservation.id} отменена"
        assert reservation_status(reservation.id) == ReservationStatus.CANCELLED

    async def test_join_flow(self, state, waiting_list_service, notifier):
        await client_handlers.start_join(make_message(CLIENT), state)
        await client_handlers.process_party_size(make_message(CLIENT, "3"), state)
        assert (await state.get_data())['party_size'] == 3

        callback = make_callback(CLIENT, "type:vip")
        await client_handlers.process_table_type(callback, state, waiting_list_service)

        entry = WaitingListRepository.get_waiting_entry(CLIENT)
        assert entry.party_size == 3
        assert entry.preferred_table_type == "vip"
        assert await state.get_state() is None
        assert len(notifier.of(Event.WALK_IN_JOINED)) == 1

    async def test_party_size_out_of_range(self, state):
        await client_handlers.start_join(make_message(CLIENT), state)
        message = make_message(CLIENT, "50")

        await client_handlers.process_party_size(message, state)

        assert answer_text(message).startswith("⚠️ Введите число")
        assert 'party_size' not in await state.get_data()
