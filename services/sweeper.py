"""
Обработка броней по времени

За один проход сначала аннулируются брони, на которые клиент не пришёл,
затем брони, у которых открылось окно прихода, ставятся в лист ожидания.
Проход можно запускать сколько угодно раз подряд.
"""
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from config import settings
from database.models import Reservation, ReservationStatus, WaitingListEntry, WaitingStatus
from database.repository import (
    ReservationRepository, TableRepository, WaitingListRepository, is_unique_violation
)
from services.errors import NotFoundError
from services.notifications import Event, dispatch
from services.reservations import reservation_payload
from utils.clock import SystemClock
from utils.time_utils import reservation_datetime, service_date, service_day_start

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Итог одного прохода"""
    expired: List[int] = field(default_factory=list)
    completed: List[int] = field(default_factory=list)
    activated: List[int] = field(default_factory=list)
    # (ID брони, номер стола)
    already_active: List[Tuple[int, Optional[int]]] = field(default_factory=list)
    deferred: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.expired or self.completed or self.activated or self.failed)


class ActivationSweeper:
    """Активация и аннулирование одобренных броней"""

    def __init__(self, notifier=None, clock=None):
        self.notifier = notifier
        self.clock = clock or SystemClock()

    async def run(self) -> SweepReport:
        """Один проход: сначала аннулирование, потом активация"""
        report = SweepReport()
        now = self.clock.now()

        await self.expire_stale(now, report)
        await self.activate_due(now, report)

        if report.has_changes:
            logger.info(
                f"Обработка броней: аннулировано {len(report.expired)}, "
                f"завершено {len(report.completed)}, активировано {len(report.activated)}, "
                f"отложено {len(report.deferred)}, ошибок {len(report.failed)}"
            )
        return report

    # ---------- аннулирование ----------

    async def expire_stale(self, now: datetime, report: SweepReport):
        """Брони, окно прихода которых закрылось без посадки клиента"""
        window = timedelta(minutes=settings.EXPIRY_WINDOW_MINUTES)

        for reservation in ReservationRepository.get_approved_until(service_date(now)):
            if now <= reservation_datetime(reservation.date, reservation.time) + window:
                continue
            try:
                await self._expire(reservation, now, report)
            except Exception as e:
                logger.error(f"Ошибка аннулирования брони #{reservation.id}: {e}", exc_info=True)
                report.failed.append(reservation.id)

    def _client_seated(self, reservation: Reservation) -> bool:
        seated = WaitingListRepository.get_client_entries_since(
            reservation.client_id,
            service_day_start(reservation.date),
            (WaitingStatus.SEATED,)
        )
        return bool(seated)

    async def _expire(self, reservation: Reservation, now: datetime, report: SweepReport):
        if self._client_seated(reservation):
            if ReservationRepository.set_status(
                reservation.id, ReservationStatus.COMPLETED, now, (ReservationStatus.APPROVED,)
            ):
                report.completed.append(reservation.id)
            return

        for entry in WaitingListRepository.get_entries_for_reservation(reservation.id):
            if entry.status == WaitingStatus.WAITING:
                WaitingListRepository.set_status(entry.id, WaitingStatus.NO_SHOW, now)

        # Удержание снимаем, только если стол не занят и удерживается этим клиентом
        TableRepository.release_claim(reservation.table_id, reservation.client_id)

        if not ReservationRepository.set_status(
            reservation.id, ReservationStatus.CANCELLED, now, (ReservationStatus.APPROVED,)
        ):
            return

        report.expired.append(reservation.id)
        logger.info(f"Бронь #{reservation.id} аннулирована: клиент {reservation.client_id} не пришёл")

        table = TableRepository.get_table_by_id(reservation.table_id)
        reservation.status = ReservationStatus.CANCELLED
        await dispatch(self.notifier, Event.RESERVATION_EXPIRED, reservation_payload(reservation, table))

    # ---------- активация ----------

    async def activate_due(self, now: datetime, report: SweepReport):
        """Брони на сегодня, у которых открылось окно прихода"""
        window = timedelta(minutes=settings.ACTIVATION_WINDOW_MINUTES)
        today = service_date(now)

        for reservation in ReservationRepository.get_reservations_by_date(
            today, (ReservationStatus.APPROVED,)
        ):
            if now < reservation_datetime(reservation.date, reservation.time) - window:
                continue
            try:
                await self._activate(reservation, now, report)
            except Exception as e:
                logger.error(f"Ошибка активации брони #{reservation.id}: {e}", exc_info=True)
                report.failed.append(reservation.id)

    async def _activate(self, reservation: Reservation, now: datetime, report: SweepReport):
        if self._client_seated(reservation):
            return

        table = TableRepository.get_table_by_id(reservation.table_id)
        if table is None:
            raise NotFoundError(f"Стол #{reservation.table_id} не найден")

        # Бронь активируется один раз: отменённая или "не пришёл" запись
        # остаётся окончательной, дальше бронью занимается аннулирование
        entries = WaitingListRepository.get_entries_for_reservation(reservation.id)
        if entries:
            if any(e.status == WaitingStatus.WAITING for e in entries):
                report.already_active.append((reservation.id, table.number))
            return

        if WaitingListRepository.get_waiting_entry(reservation.client_id) is not None:
            report.already_active.append((reservation.id, table.number))
            return

        # Гостя, который ещё сидит за столом, не выселяем: ждём освобождения
        if not table.is_free_for(reservation.client_id):
            report.deferred.append(reservation.id)
            logger.info(f"Бронь #{reservation.id} ждёт освобождения стола №{table.number}")
            return

        entry = WaitingListEntry(
            id=None,
            client_id=reservation.client_id,
            party_size=reservation.party_size,
            preferred_table_type=table.type,
            special_requests=reservation.notes,
            priority=settings.RESERVATION_PRIORITY,
            reservation_id=reservation.id,
            joined_at=now
        )

        try:
            entry.id = WaitingListRepository.create_entry(entry)
        except sqlite3.IntegrityError as e:
            if is_unique_violation(e):
                report.already_active.append((reservation.id, table.number))
                return
            raise

        report.activated.append(reservation.id)
        logger.info(
            f"Бронь #{reservation.id} активирована: клиент {reservation.client_id} "
            f"в листе ожидания (#{entry.id}), стол №{table.number}"
        )
        await dispatch(
            self.notifier,
            Event.RESERVATION_ACTIVATED,
            reservation_payload(reservation, table, entry_id=entry.id)
        )
