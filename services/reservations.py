"""
Жизненный цикл бронирований: создание, решение персонала, отмена клиентом
и запросы доступности
"""
import logging
import sqlite3
from datetime import date, time, timedelta
from typing import Dict, List, Optional

from config import settings
from database.models import (
    Reservation, ReservationStatus, Table, TableType, TimeSlot, WaitingStatus
)
from database.repository import (
    ReservationRepository, TableRepository, WaitingListRepository, is_unique_violation
)
from services.conflicts import get_slots_availability, is_time_free, suggest_alternatives
from services.errors import (
    CapacityError, ConflictError, ForbiddenError, NotFoundError, SlotTakenError,
    ValidationError
)
from services.identity import Actor
from services.notifications import Event, dispatch
from utils.clock import SystemClock
from utils.time_utils import (
    format_date, format_time, get_canonical_slots, is_within_operating_hours,
    reservation_datetime, service_date, service_minutes
)

logger = logging.getLogger(__name__)


def reservation_payload(reservation: Reservation, table: Optional[Table] = None, **extra) -> Dict:
    """Данные брони для уведомлений"""
    payload = {
        'reservation_id': reservation.id,
        'client_id': reservation.client_id,
        'table_id': reservation.table_id,
        'table_number': table.number if table else None,
        'date': format_date(reservation.date),
        'time': format_time(reservation.time),
        'party_size': reservation.party_size,
        'notes': reservation.notes,
    }
    payload.update(extra)
    return payload


def sort_reservations(reservations: List[Reservation]) -> List[Reservation]:
    """Порядок сервисного дня: 00:15 идёт после 23:30"""
    return sorted(reservations, key=lambda r: (r.date, service_minutes(r.time), r.id))


def validate_party_size(party_size: int):
    """Размер компании в допустимых пределах"""
    if not settings.MIN_PARTY_SIZE <= party_size <= settings.MAX_PARTY_SIZE:
        raise ValidationError(
            f"Количество гостей должно быть от {settings.MIN_PARTY_SIZE} "
            f"до {settings.MAX_PARTY_SIZE}"
        )


def validate_table_type(table_type: Optional[str]):
    """Тип стола из известного набора (None - любой)"""
    if table_type is not None and table_type not in TableType.ALL:
        raise ValidationError(
            f"Неизвестный тип стола: {table_type}. Допустимо: {', '.join(TableType.ALL)}"
        )


def validate_operating_hours(at: time):
    """Время внутри часов работы"""
    if not is_within_operating_hours(at):
        raise ValidationError(
            f"Мы работаем с {format_time(settings.OPENING_TIME)} "
            f"до {format_time(settings.CLOSING_TIME)} (следующего дня)"
        )


class ReservationService:
    """Создание, одобрение и отмена броней, запросы доступности"""

    def __init__(self, notifier=None, clock=None):
        self.notifier = notifier
        self.clock = clock or SystemClock()

    # ---------- чтение ----------

    @staticmethod
    def get_table(table_id: int) -> Table:
        table = TableRepository.get_table_by_id(table_id)
        if table is None:
            raise NotFoundError("Стол не найден")
        return table

    @staticmethod
    def get_reservation_or_404(reservation_id: int) -> Reservation:
        reservation = ReservationRepository.get_reservation_by_id(reservation_id)
        if reservation is None:
            raise NotFoundError("Бронь не найдена")
        return reservation

    @staticmethod
    def reserved_times(table_id: int, day: date,
                       statuses=ReservationStatus.ACTIVE) -> List[time]:
        """Времена броней стола, которые держат слоты"""
        return [r.time for r in ReservationRepository.get_table_reservations(table_id, day, statuses)]

    def is_slot_free(self, table_id: int, day: date, at: time) -> bool:
        """Свободен ли стол в это время с учётом окна блокировки"""
        return is_time_free(at, self.reserved_times(table_id, day))

    def get_reservation(self, reservation_id: int, actor: Actor) -> Reservation:
        """Бронь видна владельцу и персоналу"""
        reservation = self.get_reservation_or_404(reservation_id)
        if reservation.client_id != actor.user_id and not actor.is_staff:
            raise ForbiddenError("У вас нет доступа к этой брони")
        return reservation

    def get_user_reservations(self, client_id: int) -> List[Reservation]:
        return sort_reservations(ReservationRepository.get_client_reservations(client_id))

    def get_all_reservations(self) -> List[Reservation]:
        return sort_reservations(ReservationRepository.get_all_reservations())

    def get_today_reservations(self) -> List[Reservation]:
        """Брони текущего сервисного дня (все статусы)"""
        today = service_date(self.clock.now())
        return sort_reservations(ReservationRepository.get_reservations_by_date(today))

    # ---------- изменения ----------

    async def create(self, client_id: int, table_id: int, day: date, at: time,
                     party_size: int, notes: Optional[str] = None) -> Reservation:
        """Создание брони в статусе pending"""
        validate_party_size(party_size)
        table = self.get_table(table_id)

        if table.capacity < party_size:
            raise CapacityError(f"Выбранный стол вмещает только {table.capacity} гостей")

        now = self.clock.now()
        if day < service_date(now):
            raise ValidationError("Нельзя забронировать стол на прошедшую дату")

        validate_operating_hours(at)

        if reservation_datetime(day, at) < now + timedelta(minutes=settings.MIN_LEAD_MINUTES):
            raise ValidationError(
                f"Бронь должна быть оформлена минимум за {settings.MIN_LEAD_MINUTES} минут"
            )

        if not self.is_slot_free(table.id, day, at):
            raise SlotTakenError("Этот слот больше недоступен")

        reservation = Reservation(
            id=None,
            client_id=client_id,
            table_id=table.id,
            date=day,
            time=at,
            party_size=party_size,
            notes=notes,
            created_at=now,
            updated_at=now
        )

        try:
            reservation.id = ReservationRepository.create_reservation(reservation)
        except sqlite3.IntegrityError as e:
            if is_unique_violation(e):
                raise SlotTakenError("Этот слот больше недоступен") from e
            raise

        logger.info(
            f"Бронь #{reservation.id} создана: клиент {client_id}, стол №{table.number}, "
            f"{day} {format_time(at)}, гостей {party_size}"
        )
        await dispatch(self.notifier, Event.RESERVATION_CREATED, reservation_payload(reservation, table))
        return reservation

    async def decide(self, reservation_id: int, approver_id: int, decision: str,
                     reason: Optional[str] = None) -> Reservation:
        """Одобрение или отклонение брони персоналом"""
        if decision not in (ReservationStatus.APPROVED, ReservationStatus.REJECTED):
            raise ValidationError('Недопустимое решение. Используйте "approved" или "rejected"')

        reason = (reason or '').strip() or None
        if decision == ReservationStatus.REJECTED and not reason:
            raise ValidationError("Укажите причину отклонения")
        if decision == ReservationStatus.APPROVED:
            reason = None

        reservation = self.get_reservation_or_404(reservation_id)
        now = self.clock.now()

        if not ReservationRepository.decide(reservation_id, decision, approver_id, now, reason):
            current = self.get_reservation_or_404(reservation_id)
            raise ConflictError(f"Бронь уже обработана (статус: {current.status})")

        reservation.status = decision
        reservation.approved_by = approver_id
        reservation.approved_at = now
        reservation.rejection_reason = reason
        reservation.updated_at = now

        logger.info(f"Бронь #{reservation_id}: {decision} (сотрудник {approver_id})")

        # Стол здесь не трогаем: занятость наступает по времени, её ведёт sweeper
        table = TableRepository.get_table_by_id(reservation.table_id)
        event = Event.RESERVATION_APPROVED if decision == ReservationStatus.APPROVED else Event.RESERVATION_REJECTED
        await dispatch(self.notifier, event, reservation_payload(reservation, table, reason=reason))
        return reservation

    async def cancel(self, reservation_id: int, client_id: int) -> Reservation:
        """Отмена брони её владельцем"""
        reservation = self.get_reservation_or_404(reservation_id)

        if reservation.client_id != client_id:
            raise ForbiddenError("Отменить бронь может только её владелец")
        if reservation.status not in ReservationStatus.ACTIVE:
            raise ForbiddenError("Эту бронь уже нельзя отменить")

        now = self.clock.now()
        if not ReservationRepository.set_status(
            reservation_id, ReservationStatus.CANCELLED, now, ReservationStatus.ACTIVE
        ):
            raise ForbiddenError("Эту бронь уже нельзя отменить")

        # Если бронь уже активирована - убираем её запись из очереди
        for entry in WaitingListRepository.get_entries_for_reservation(reservation_id):
            if entry.status == WaitingStatus.WAITING:
                WaitingListRepository.set_status(entry.id, WaitingStatus.CANCELLED, now)

        reservation.status = ReservationStatus.CANCELLED
        reservation.updated_at = now
        logger.info(f"Бронь #{reservation_id} отменена клиентом {client_id}")

        table = TableRepository.get_table_by_id(reservation.table_id)
        await dispatch(self.notifier, Event.RESERVATION_CANCELLED, reservation_payload(reservation, table))
        return reservation

    # ---------- доступность ----------

    def get_tables(self, table_type: Optional[str] = None, min_capacity: int = 0) -> List[Table]:
        """Столы нужного типа и вместимости"""
        validate_table_type(table_type)
        return TableRepository.get_tables(table_type, min_capacity)

    def get_available_tables(self, table_type: str, min_capacity: int,
                             day: date, at: time) -> List[Table]:
        """Столы, свободные в указанное время, чтобы клиент выбрал сам"""
        validate_operating_hours(at)
        return [
            table for table in self.get_tables(table_type, min_capacity)
            if self.is_slot_free(table.id, day, at)
        ]

    def suggest_alternatives(self, table_type: Optional[str], party_size: int,
                             day: date, at: time) -> List[time]:
        """Ближайшее время, когда есть подходящий свободный стол"""
        validate_operating_hours(at)
        tables = self.get_tables(table_type, party_size)
        reserved = {table.id: self.reserved_times(table.id, day) for table in tables}

        def has_free_table(candidate: time) -> bool:
            return any(is_time_free(candidate, times) for times in reserved.values())

        # На запрошенное время стол есть - альтернативы не нужны
        if has_free_table(at):
            return []
        return suggest_alternatives(at, has_free_table)

    def get_table_availability(self, table_id: int, day: date) -> List[TimeSlot]:
        """Сетка слотов одного стола на дату (только по броням)"""
        table = self.get_table(table_id)
        slots = get_slots_availability(self.reserved_times(table.id, day), table_id=table.id)
        for slot in slots:
            slot.table_number = table.number
            slot.table_capacity = table.capacity
        return slots

    def get_day_availability(self, day: date, party_size: Optional[int] = None) -> List[TimeSlot]:
        """Сетка слотов на дату: для каждого слота первый подходящий свободный стол"""
        if party_size is not None:
            validate_party_size(party_size)
        tables = TableRepository.get_tables(None, party_size or 0)

        reserved = {table.id: [] for table in tables}
        for reservation in ReservationRepository.get_reservations_by_date(day, ReservationStatus.ACTIVE):
            if reservation.table_id in reserved:
                reserved[reservation.table_id].append(reservation.time)

        slots = []
        for slot in get_canonical_slots():
            free_table = next(
                (table for table in tables if is_time_free(slot, reserved[table.id])),
                None
            )
            if free_table is None:
                slots.append(TimeSlot(time=slot, available=False))
            else:
                slots.append(TimeSlot(
                    time=slot,
                    available=True,
                    table_id=free_table.id,
                    table_number=free_table.number,
                    table_capacity=free_table.capacity
                ))
        return slots

    def is_table_reserved(self, table_id: int, day: date, at: time) -> bool:
        """
        Проверка для метрдотеля перед посадкой гостя без брони:
        стол физически занят или на него есть одобренная бронь в окне ±45 минут
        """
        table = self.get_table(table_id)
        if table.occupied:
            logger.info(f"Стол №{table.number} физически занят")
            return True

        approved = self.reserved_times(table.id, day, (ReservationStatus.APPROVED,))
        reserved = not is_time_free(at, approved)
        if reserved:
            logger.info(f"Стол №{table.number} зарезервирован около {format_time(at)} {day}")
        return reserved
