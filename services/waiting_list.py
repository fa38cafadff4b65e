"""
Лист ожидания и рассадка

Стол захватывается только условной записью в БД: из нескольких одновременных
попыток посадить гостей за один стол проходит ровно одна, остальные получают
TableAlreadyTakenError.
"""
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import List, Optional

from config import settings
from database.models import ReservationStatus, Table, WaitingListEntry, WaitingStatus
from database.repository import (
    ReservationRepository, TableRepository, WaitingListRepository, is_unique_violation
)
from services.errors import (
    CapacityError, ConflictError, ForbiddenError, NotFoundError, TableAlreadyTakenError
)
from services.identity import Actor
from services.notifications import Event, dispatch
from services.reservations import validate_party_size, validate_table_type
from services.tables import TableRegistry
from utils.clock import SystemClock
from utils.time_utils import service_date, service_day_start

logger = logging.getLogger(__name__)

# Сколько последних посадок берём для оценки времени ожидания
ESTIMATE_SAMPLE_SIZE = 10


@dataclass
class PositionInfo:
    """Место клиента в очереди"""
    position: int
    entry: WaitingListEntry
    estimated_wait: Optional[int] = None


@dataclass
class WaitingListSummary:
    """Очередь для персонала"""
    entries: List[WaitingListEntry] = field(default_factory=list)
    total: int = 0
    average_wait: Optional[int] = None


class WaitingListService:
    """Лист ожидания, посадка за столы и освобождение столов"""

    def __init__(self, notifier=None, clock=None):
        self.notifier = notifier
        self.clock = clock or SystemClock()

    @staticmethod
    def get_entry(entry_id: int) -> WaitingListEntry:
        entry = WaitingListRepository.get_entry_by_id(entry_id)
        if entry is None:
            raise NotFoundError("Запись в листе ожидания не найдена")
        return entry

    def average_wait(self, limit: Optional[int] = None) -> Optional[int]:
        """Среднее ожидание (мин) среди посаженных в текущий сервисный день"""
        since = service_day_start(service_date(self.clock.now()))
        waits = [
            entry.wait_minutes
            for entry in WaitingListRepository.get_seated_since(since, limit)
            if entry.wait_minutes is not None
        ]
        if not waits:
            return None
        return round(sum(waits) / len(waits))

    # ---------- очередь ----------

    async def join(self, client_id: int, party_size: int,
                   preferred_type: Optional[str] = None,
                   special_requests: Optional[str] = None,
                   priority: Optional[int] = None) -> WaitingListEntry:
        """Запись гостя без брони в лист ожидания"""
        validate_party_size(party_size)
        validate_table_type(preferred_type)

        if WaitingListRepository.get_waiting_entry(client_id) is not None:
            raise ConflictError("Вы уже в листе ожидания")

        entry = WaitingListEntry(
            id=None,
            client_id=client_id,
            party_size=party_size,
            preferred_table_type=preferred_type,
            special_requests=special_requests,
            priority=settings.DEFAULT_PRIORITY if priority is None else priority,
            joined_at=self.clock.now()
        )

        try:
            entry.id = WaitingListRepository.create_entry(entry)
        except sqlite3.IntegrityError as e:
            if is_unique_violation(e):
                raise ConflictError("Вы уже в листе ожидания") from e
            raise

        position = WaitingListRepository.count_ahead(entry) + 1
        logger.info(
            f"Клиент {client_id} в листе ожидания (#{entry.id}): гостей {party_size}, "
            f"позиция {position}"
        )
        await dispatch(self.notifier, Event.WALK_IN_JOINED, {
            'entry_id': entry.id,
            'client_id': client_id,
            'party_size': party_size,
            'preferred_table_type': preferred_type,
            'special_requests': special_requests,
            'position': position,
        })
        return entry

    def cancel(self, entry_id: int, actor: Actor) -> WaitingListEntry:
        """Выход из очереди: сам клиент или персонал зала"""
        entry = self.get_entry(entry_id)
        if entry.client_id != actor.user_id and not actor.is_host:
            raise ForbiddenError("Отменить можно только свою запись")

        if not WaitingListRepository.set_status(entry_id, WaitingStatus.CANCELLED, self.clock.now()):
            raise ConflictError("Запись уже не в листе ожидания")

        entry.status = WaitingStatus.CANCELLED
        logger.info(f"Запись #{entry_id} отменена пользователем {actor.user_id}")
        return entry

    def mark_no_show(self, entry_id: int) -> WaitingListEntry:
        """Гость не отозвался"""
        entry = self.get_entry(entry_id)

        if not WaitingListRepository.set_status(entry_id, WaitingStatus.NO_SHOW, self.clock.now()):
            raise ConflictError("Запись уже не в листе ожидания")

        entry.status = WaitingStatus.NO_SHOW
        logger.info(f"Запись #{entry_id}: гость не пришёл")
        return entry

    def position(self, client_id: int) -> PositionInfo:
        """Позиция клиента в очереди и примерное ожидание"""
        entry = WaitingListRepository.get_waiting_entry(client_id)
        if entry is None:
            raise NotFoundError("Вы не в листе ожидания")

        position = WaitingListRepository.count_ahead(entry) + 1
        average = self.average_wait(ESTIMATE_SAMPLE_SIZE)
        estimated = average * position if average is not None else None
        return PositionInfo(position=position, entry=entry, estimated_wait=estimated)

    def get_waiting_list(self) -> WaitingListSummary:
        entries = WaitingListRepository.get_waiting_entries()
        return WaitingListSummary(
            entries=entries,
            total=len(entries),
            average_wait=self.average_wait()
        )

    # ---------- столы ----------

    def assign_table(self, entry_id: int, table_id: int) -> Table:
        """Посадка записи из очереди за стол по решению персонала"""
        entry = self.get_entry(entry_id)
        table = TableRegistry.get_table(table_id)

        if entry.status not in (WaitingStatus.WAITING, WaitingStatus.DISPLACED):
            raise ConflictError("Запись уже не в листе ожидания")
        if table.occupied:
            raise ConflictError(f"Стол №{table.number} уже занят")
        if table.claimant_id not in (None, entry.client_id):
            raise ConflictError(f"Стол №{table.number} закреплён за другим гостем")
        if table.capacity < entry.party_size:
            raise CapacityError(
                f"Стол №{table.number} вмещает {table.capacity}, а гостей {entry.party_size}"
            )

        if not WaitingListRepository.seat_entry(entry, table.id, self.clock.now()):
            raise TableAlreadyTakenError("Стол уже занят, обновите данные")

        logger.info(f"Запись #{entry.id} (клиент {entry.client_id}) посажена за стол №{table.number}")
        return TableRegistry.get_table(table.id)

    def free_table(self, table_id: int) -> Table:
        """Освобождение стола. Следующего гостя не сажаем автоматически"""
        table = TableRegistry.get_table(table_id)
        if table.is_free:
            return table

        if not TableRepository.free_table(table):
            raise ConflictError("Состояние стола изменилось, обновите данные")

        logger.info(f"Стол №{table.number} освобождён (клиент {table.claimant_id})")
        table.occupied = False
        table.claimant_id = None
        return table

    def confirm_arrival(self, client_id: int, table_id: Optional[int] = None,
                        number: Optional[int] = None) -> Table:
        """Клиент пришёл и отметился у стола (код на столе или /arrive)"""
        table = TableRegistry.find_table(table_id, number)

        current = TableRepository.get_occupied_table_of_client(client_id)
        if current is not None:
            if current.id == table.id:
                raise ConflictError(f"Вы уже за столом №{table.number}")
            raise ConflictError(f"Вы уже сидите за столом №{current.number}")

        if table.occupied:
            raise ConflictError(f"Стол №{table.number} уже занят")

        if table.claimant_id == client_id:
            if not TableRepository.occupy_table(table.id, client_id):
                raise TableAlreadyTakenError("Стол уже занят, обновите данные")
            logger.info(f"Клиент {client_id} сел за стол №{table.number}")
            return TableRegistry.get_table(table.id)

        if table.claimant_id is not None:
            raise ForbiddenError("Этот стол закреплён не за вами")

        # Стол свободен: садиться можно только по активированной брони на этот стол
        entry = WaitingListRepository.get_waiting_entry(client_id)
        reservation = None
        if entry is not None and entry.reservation_id is not None:
            reservation = ReservationRepository.get_reservation_by_id(entry.reservation_id)
        if (reservation is None or reservation.table_id != table.id
                or reservation.status not in ReservationStatus.ACTIVE):
            raise ForbiddenError("Этот стол закреплён не за вами")

        if not WaitingListRepository.seat_entry(entry, table.id, self.clock.now(), occupy=True):
            raise TableAlreadyTakenError("Стол уже занят, обновите данные")

        logger.info(f"Клиент {client_id} пришёл по брони #{reservation.id}, стол №{table.number}")
        return TableRegistry.get_table(table.id)
