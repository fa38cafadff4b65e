"""
Общие фикстуры: чистая БД на каждый тест, управляемые часы и запись уведомлений
"""
from datetime import date, datetime, time

import pytest

from config import settings
from database.database import init_db
from database.models import ReservationStatus, TableType
from database.repository import ReservationRepository, TableRepository
from services.reservations import ReservationService
from services.sweeper import ActivationSweeper
from services.waiting_list import WaitingListService
from utils.clock import FixedClock

SERVICE_DAY = date(2025, 3, 1)
STAFF_ID = 900


class RecordingNotifier:
    """Запоминает отправленные уведомления"""

    def __init__(self):
        self.events = []

    async def notify(self, event, payload):
        self.events.append((event, payload))

    def of(self, event):
        return [payload for name, payload in self.events if name == event]


@pytest.fixture(autouse=True)
def db(tmp_path, monkeypatch):
    """Отдельный файл БД для каждого теста, без столов по умолчанию"""
    monkeypatch.setattr(settings, 'DB_PATH', str(tmp_path / 'restaurant.db'))
    init_db(seed=False)


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 3, 1, 12, 0))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def reservation_service(notifier, clock):
    return ReservationService(notifier, clock)


@pytest.fixture
def waiting_list_service(notifier, clock):
    return WaitingListService(notifier, clock)


@pytest.fixture
def sweeper(notifier, clock):
    return ActivationSweeper(notifier, clock)


@pytest.fixture
def make_table():
    """Фабрика столов с последовательными номерами"""
    numbers = iter(range(1, 1000))

    def factory(capacity=4, table_type=TableType.STANDARD, number=None):
        table_id = TableRepository.create_table(
            number if number is not None else next(numbers), capacity, table_type
        )
        return TableRepository.get_table_by_id(table_id)

    return factory


@pytest.fixture
def approved_reservation(reservation_service):
    """Создание и одобрение брони"""

    async def factory(table, at, client_id=100, day=SERVICE_DAY, party_size=2):
        reservation = await reservation_service.create(
            client_id, table.id, day, at, party_size
        )
        await reservation_service.decide(reservation.id, STAFF_ID, ReservationStatus.APPROVED)
        return ReservationRepository.get_reservation_by_id(reservation.id)

    return factory


def hhmm(value: str) -> time:
    hours, minutes = value.split(':')
    return time(int(hours), int(minutes))
