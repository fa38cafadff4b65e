"""
Тесты рассылки уведомлений
"""
from unittest.mock import AsyncMock

from config import settings
from services.notifications import (
    Event, LoggingNotifier, TelegramNotifier, dispatch, get_recipients, render_message
)

PAYLOAD = {
    'reservation_id': 12,
    'client_id': 100,
    'table_number': 5,
    'date': '01.03 (Сб)',
    'time': '21:00',
    'party_size': 4,
    'notes': None,
    'reason': 'Закрытое мероприятие',
}


class TestRecipients:

    def test_new_reservation_goes_to_owners_and_supervisors(self, monkeypatch):
        monkeypatch.setattr(settings, 'OWNER_IDS', [1])
        monkeypatch.setattr(settings, 'SUPERVISOR_IDS', [2, 1])

        assert get_recipients(Event.RESERVATION_CREATED, PAYLOAD) == [1, 2]

    def test_walk_in_goes_to_maitres(self, monkeypatch):
        monkeypatch.setattr(settings, 'MAITRE_IDS', [7])
        assert get_recipients(Event.WALK_IN_JOINED, {'client_id': 100}) == [7]

    def test_decision_goes_to_client(self):
        assert get_recipients(Event.RESERVATION_APPROVED, PAYLOAD) == [100]


class TestTelegramNotifier:

    async def test_created_event_has_decision_buttons(self, monkeypatch):
        monkeypatch.setattr(settings, 'OWNER_IDS', [1])
        monkeypatch.setattr(settings, 'SUPERVISOR_IDS', [])
        bot = AsyncMock()

        await TelegramNotifier(bot).notify(Event.RESERVATION_CREATED, PAYLOAD)

        bot.send_message.assert_awaited_once()
        args, kwargs = bot.send_message.call_args
        assert args[0] == 1
        buttons = kwargs['reply_markup'].inline_keyboard[0]
        assert [b.callback_data for b in buttons] == ['approve:12', 'reject:12']

    async def test_rejection_text_has_reason(self):
        bot = AsyncMock()

        await TelegramNotifier(bot).notify(Event.RESERVATION_REJECTED, PAYLOAD)

        args, _ = bot.send_message.call_args
        assert 'Закрытое мероприятие' in args[1]

    async def test_one_failed_recipient_does_not_stop_others(self, monkeypatch):
        monkeypatch.setattr(settings, 'OWNER_IDS', [1, 2])
        monkeypatch.setattr(settings, 'SUPERVISOR_IDS', [])
        bot = AsyncMock()
        bot.send_message.side_effect = [RuntimeError("blocked"), None]

        await TelegramNotifier(bot).notify(Event.RESERVATION_CANCELLED, PAYLOAD)

        assert bot.send_message.await_count == 2


class TestDispatch:

    async def test_errors_swallowed(self):
        notifier = AsyncMock()
        notifier.notify.side_effect = RuntimeError("boom")

        await dispatch(notifier, Event.RESERVATION_APPROVED, PAYLOAD)

        notifier.notify.assert_awaited_once()

    async def test_no_notifier(self):
        await dispatch(None, Event.RESERVATION_APPROVED, PAYLOAD)

    async def test_logging_notifier(self):
        await dispatch(LoggingNotifier(), Event.WALK_IN_JOINED, {'entry_id': 1})

    def test_every_event_renders(self):
        for event in (
            Event.RESERVATION_CREATED, Event.RESERVATION_APPROVED, Event.RESERVATION_REJECTED,
            Event.RESERVATION_CANCELLED, Event.RESERVATION_ACTIVATED, Event.RESERVATION_EXPIRED,
            Event.WALK_IN_JOINED,
        ):
            assert render_message(event, PAYLOAD)
