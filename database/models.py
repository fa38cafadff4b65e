"""
Модели данных для работы с БД
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional


class TableType:
    """Типы столов"""
    STANDARD = 'standard'
    VIP = 'vip'
    ACCESSIBLE = 'accessible'

    ALL = (STANDARD, VIP, ACCESSIBLE)


class ReservationStatus:
    """Статусы бронирования"""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'

    # Брони, которые держат слот стола
    ACTIVE = (PENDING, APPROVED)


class WaitingStatus:
    """Статусы записи в листе ожидания"""
    WAITING = 'waiting'
    SEATED = 'seated'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'
    DISPLACED = 'displaced'


@dataclass
class Table:
    """Модель стола"""
    id: int
    number: int
    capacity: int
    type: str = TableType.STANDARD
    occupied: bool = False
    claimant_id: Optional[int] = None
    assigned_staff_id: Optional[int] = None

    @property
    def is_free(self) -> bool:
        """Стол никем не занят и не удерживается"""
        return not self.occupied and self.claimant_id is None

    def is_free_for(self, client_id: int) -> bool:
        """Стол свободен для клиента (или уже удерживается им самим)"""
        return not self.occupied and self.claimant_id in (None, client_id)


@dataclass
class Reservation:
    """Модель бронирования"""
    id: Optional[int]
    client_id: int
    table_id: int
    date: date  # дата сервисного дня (вечер, к которому относится бронь)
    time: time
    party_size: int
    status: str = ReservationStatus.PENDING
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class WaitingListEntry:
    """Модель записи в листе ожидания"""
    id: Optional[int]
    client_id: int
    party_size: int
    preferred_table_type: Optional[str] = None
    special_requests: Optional[str] = None
    status: str = WaitingStatus.WAITING
    priority: int = 0
    reservation_id: Optional[int] = None  # если запись создана из брони
    joined_at: Optional[datetime] = None
    seated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def wait_minutes(self) -> Optional[int]:
        """Сколько минут клиент ждал посадки"""
        if self.seated_at is None or self.joined_at is None:
            return None
        return int((self.seated_at - self.joined_at).total_seconds() // 60)


@dataclass
class TimeSlot:
    """Временной слот (не хранится в БД)"""
    time: time
    available: bool
    table_id: Optional[int] = None
    table_number: Optional[int] = None
    table_capacity: Optional[int] = None
