"""
Репозиторий для работы с данными

Все изменения состояния стола - условные UPDATE: запрос сравнивает текущие
значения claimant_id/occupied прямо в WHERE, а успех определяется по rowcount.
"""
import sqlite3
from datetime import date, datetime, time
from typing import List, Optional, Sequence
from database.database import get_db
from database.models import (
    Table, Reservation, WaitingListEntry, ReservationStatus, WaitingStatus
)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(value) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _placeholders(values: Sequence) -> str:
    return ', '.join('?' for _ in values)


class TableRepository:
    """Репозиторий для работы со столами"""

    @staticmethod
    def create_table(number: int, capacity: int, table_type: str,
                     assigned_staff_id: Optional[int] = None) -> int:
        """Добавление стола"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO tables (number, capacity, type, assigned_staff_id)
                VALUES (?, ?, ?, ?)
            """, (number, capacity, table_type, assigned_staff_id))
            return cursor.lastrowid

    @staticmethod
    def get_all_tables() -> List[Table]:
        """Получение всех столов"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM tables ORDER BY number")
            return [TableRepository._row_to_table(row) for row in cursor.fetchall()]

    @staticmethod
    def get_table_by_id(table_id: int) -> Optional[Table]:
        """Получение стола по ID"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM tables WHERE id = ?", (table_id,))
            row = cursor.fetchone()
            return TableRepository._row_to_table(row) if row else None

    @staticmethod
    def get_table_by_number(number: int) -> Optional[Table]:
        """Получение стола по номеру"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM tables WHERE number = ?", (number,))
            row = cursor.fetchone()
            return TableRepository._row_to_table(row) if row else None

    @staticmethod
    def get_tables(table_type: Optional[str] = None, min_capacity: int = 0) -> List[Table]:
        """Столы нужного типа и вместимости, по номеру"""
        query = "SELECT * FROM tables WHERE capacity >= ?"
        params = [min_capacity]
        if table_type is not None:
            query += " AND type = ?"
            params.append(table_type)
        query += " ORDER BY number"

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [TableRepository._row_to_table(row) for row in cursor.fetchall()]

    @staticmethod
    def get_occupied_table_of_client(client_id: int) -> Optional[Table]:
        """Стол, за которым клиент сейчас сидит"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM tables WHERE claimant_id = ? AND occupied = 1
                LIMIT 1
            """, (client_id,))
            row = cursor.fetchone()
            return TableRepository._row_to_table(row) if row else None

    @staticmethod
    def get_claimed_table_of_client(client_id: int) -> Optional[Table]:
        """Стол, закреплённый за клиентом (сидит он или ещё нет)"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM tables WHERE claimant_id = ?
                ORDER BY occupied DESC LIMIT 1
            """, (client_id,))
            row = cursor.fetchone()
            return TableRepository._row_to_table(row) if row else None

    @staticmethod
    def occupy_table(table_id: int, client_id: int) -> bool:
        """Клиент сел за закреплённый за ним стол"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE tables SET occupied = 1
                WHERE id = ? AND claimant_id = ? AND occupied = 0
            """, (table_id, client_id))
            return cursor.rowcount > 0

    @staticmethod
    def release_claim(table_id: int, client_id: int) -> bool:
        """Снятие удержания, только если стол не занят и удерживается этим клиентом"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE tables SET claimant_id = NULL
                WHERE id = ? AND occupied = 0 AND claimant_id = ?
            """, (table_id, client_id))
            return cursor.rowcount > 0

    @staticmethod
    def free_table(table: Table) -> bool:
        """
        Освобождение стола. Запись проходит, только если состояние стола
        не изменилось с момента чтения
        """
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE tables SET occupied = 0, claimant_id = NULL
                WHERE id = ? AND occupied = ? AND claimant_id IS ?
            """, (table.id, int(table.occupied), table.claimant_id))
            return cursor.rowcount > 0

    @staticmethod
    def _row_to_table(row) -> Table:
        """Преобразование строки БД в объект Table"""
        return Table(
            id=row['id'],
            number=row['number'],
            capacity=row['capacity'],
            type=row['type'],
            occupied=bool(row['occupied']),
            claimant_id=row['claimant_id'],
            assigned_staff_id=row['assigned_staff_id']
        )


class ReservationRepository:
    """Репозиторий для работы с бронированиями"""

    @staticmethod
    def create_reservation(reservation: Reservation) -> int:
        """
        Создание нового бронирования.
        sqlite3.IntegrityError - слот (стол, дата, время) уже занят
        """
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO reservations
                (client_id, table_id, date, time, party_size, notes, status,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                reservation.client_id,
                reservation.table_id,
                reservation.date.isoformat(),
                reservation.time.strftime('%H:%M'),
                reservation.party_size,
                reservation.notes,
                reservation.status,
                _ts(reservation.created_at),
                _ts(reservation.created_at)
            ))
            return cursor.lastrowid

    @staticmethod
    def get_reservation_by_id(reservation_id: int) -> Optional[Reservation]:
        """Получение бронирования по ID"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM reservations WHERE id = ?", (reservation_id,))
            row = cursor.fetchone()
            return ReservationRepository._row_to_reservation(row) if row else None

    @staticmethod
    def get_table_reservations(table_id: int, day: date,
                               statuses: Sequence[str] = ReservationStatus.ACTIVE) -> List[Reservation]:
        """Брони стола на сервисный день в указанных статусах"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT * FROM reservations
                WHERE table_id = ? AND date = ? AND status IN ({_placeholders(statuses)})
            """, (table_id, day.isoformat(), *statuses))
            return [ReservationRepository._row_to_reservation(row) for row in cursor.fetchall()]

    @staticmethod
    def get_reservations_by_date(day: date,
                                 statuses: Optional[Sequence[str]] = None) -> List[Reservation]:
        """Брони на сервисный день (все или в указанных статусах)"""
        query = "SELECT * FROM reservations WHERE date = ?"
        params = [day.isoformat()]
        if statuses:
            query += f" AND status IN ({_placeholders(statuses)})"
            params.extend(statuses)
        query += " ORDER BY time"

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [ReservationRepository._row_to_reservation(row) for row in cursor.fetchall()]

    @staticmethod
    def get_approved_until(day: date) -> List[Reservation]:
        """Одобренные брони на указанный сервисный день и раньше"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM reservations
                WHERE status = 'approved' AND date <= ?
                ORDER BY date, id
            """, (day.isoformat(),))
            return [ReservationRepository._row_to_reservation(row) for row in cursor.fetchall()]

    @staticmethod
    def get_client_reservations(client_id: int) -> List[Reservation]:
        """Все брони клиента"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM reservations WHERE client_id = ?
                ORDER BY date, id
            """, (client_id,))
            return [ReservationRepository._row_to_reservation(row) for row in cursor.fetchall()]

    @staticmethod
    def get_all_reservations() -> List[Reservation]:
        """Все брони"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM reservations ORDER BY date, id")
            return [ReservationRepository._row_to_reservation(row) for row in cursor.fetchall()]

    @staticmethod
    def decide(reservation_id: int, status: str, approver_id: int,
               decided_at: datetime, reason: Optional[str] = None) -> bool:
        """Одобрение/отклонение, только из статуса pending"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE reservations
                SET status = ?, approved_by = ?, approved_at = ?,
                    rejection_reason = ?, updated_at = ?
                WHERE id = ? AND status = 'pending'
            """, (status, approver_id, _ts(decided_at), reason, _ts(decided_at), reservation_id))
            return cursor.rowcount > 0

    @staticmethod
    def set_status(reservation_id: int, status: str, updated_at: datetime,
                   from_statuses: Sequence[str]) -> bool:
        """Смена статуса, только если текущий статус входит в from_statuses"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                UPDATE reservations SET status = ?, updated_at = ?
                WHERE id = ? AND status IN ({_placeholders(from_statuses)})
            """, (status, _ts(updated_at), reservation_id, *from_statuses))
            return cursor.rowcount > 0

    @staticmethod
    def _row_to_reservation(row) -> Reservation:
        """Преобразование строки БД в объект Reservation"""
        return Reservation(
            id=row['id'],
            client_id=row['client_id'],
            table_id=row['table_id'],
            date=date.fromisoformat(row['date']),
            time=time.fromisoformat(row['time']),
            party_size=row['party_size'],
            status=row['status'],
            notes=row['notes'],
            rejection_reason=row['rejection_reason'],
            approved_by=row['approved_by'],
            approved_at=_parse_ts(row['approved_at']),
            created_at=_parse_ts(row['created_at']),
            updated_at=_parse_ts(row['updated_at'])
        )


class WaitingListRepository:
    """Репозиторий для работы с листом ожидания"""

    @staticmethod
    def create_entry(entry: WaitingListEntry) -> int:
        """
        Добавление записи.
        sqlite3.IntegrityError - у клиента уже есть запись в статусе waiting
        """
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO waiting_list
                (client_id, party_size, preferred_table_type, special_requests,
                 status, priority, reservation_id, joined_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                entry.client_id,
                entry.party_size,
                entry.preferred_table_type,
                entry.special_requests,
                entry.status,
                entry.priority,
                entry.reservation_id,
                _ts(entry.joined_at),
                _ts(entry.joined_at)
            ))
            return cursor.lastrowid

    @staticmethod
    def get_entry_by_id(entry_id: int) -> Optional[WaitingListEntry]:
        """Получение записи по ID"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM waiting_list WHERE id = ?", (entry_id,))
            row = cursor.fetchone()
            return WaitingListRepository._row_to_entry(row) if row else None

    @staticmethod
    def get_waiting_entry(client_id: int) -> Optional[WaitingListEntry]:
        """Текущая запись клиента в статусе waiting"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM waiting_list WHERE client_id = ? AND status = 'waiting'
            """, (client_id,))
            row = cursor.fetchone()
            return WaitingListRepository._row_to_entry(row) if row else None

    @staticmethod
    def get_client_entries_since(client_id: int, since: datetime,
                                 statuses: Sequence[str]) -> List[WaitingListEntry]:
        """Записи клиента начиная с момента since в указанных статусах"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT * FROM waiting_list
                WHERE client_id = ? AND joined_at >= ?
                AND status IN ({_placeholders(statuses)})
                ORDER BY joined_at DESC
            """, (client_id, _ts(since), *statuses))
            return [WaitingListRepository._row_to_entry(row) for row in cursor.fetchall()]

    @staticmethod
    def get_entries_for_reservation(reservation_id: int) -> List[WaitingListEntry]:
        """Записи, созданные из брони"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM waiting_list WHERE reservation_id = ?
                ORDER BY joined_at DESC
            """, (reservation_id,))
            return [WaitingListRepository._row_to_entry(row) for row in cursor.fetchall()]

    @staticmethod
    def get_waiting_entries() -> List[WaitingListEntry]:
        """Очередь: приоритет по убыванию, затем время прихода"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM waiting_list WHERE status = 'waiting'
                ORDER BY priority DESC, joined_at ASC, id ASC
            """)
            return [WaitingListRepository._row_to_entry(row) for row in cursor.fetchall()]

    @staticmethod
    def count_ahead(entry: WaitingListEntry) -> int:
        """Сколько записей в очереди стоят перед данной"""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT COUNT(*) as count FROM waiting_list
                WHERE status = 'waiting' AND id != ?
                AND (
                    priority > ?
                    OR (priority = ? AND joined_at < ?)
                    OR (priority = ? AND joined_at = ? AND id < ?)
                )
            """, (
                entry.id,
                entry.priority,
                entry.priority, _ts(entry.joined_at),
                entry.priority, _ts(entry.joined_at), entry.id
            ))
            return cursor.fetchone()['count']

    @staticmethod
    def get_seated_since(since: datetime, limit: Optional[int] = None) -> List[WaitingListEntry]:
        """Записи, посаженные за стол начиная с since"""
        query = """
            SELECT * FROM waiting_list
            WHERE status = 'seated' AND joined_at >= ? AND seated_at IS NOT NULL
            ORDER BY seated_at DESC
        """
        params = [_ts(since)]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [WaitingListRepository._row_to_entry(row) for row in cursor.fetchall()]

    @staticmethod
    def set_status(entry_id: int, status: str, updated_at: datetime,
                   from_statuses: Sequence[str] = (WaitingStatus.WAITING,)) -> bool:
        """Смена статуса записи, только из указанных статусов"""
        cancelled_at = updated_at if status in (WaitingStatus.CANCELLED, WaitingStatus.NO_SHOW) else None
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                UPDATE waiting_list
                SET status = ?, cancelled_at = COALESCE(?, cancelled_at), updated_at = ?
                WHERE id = ? AND status IN ({_placeholders(from_statuses)})
            """, (status, _ts(cancelled_at), _ts(updated_at), entry_id, *from_statuses))
            return cursor.rowcount > 0

    @staticmethod
    def seat_entry(entry: WaitingListEntry, table_id: int, seated_at: datetime,
                   occupy: bool = False) -> bool:
        """
        Посадка записи за стол одной короткой транзакцией:
        1. условно закрепляем стол за клиентом (и занимаем, если occupy);
        2. переводим запись в seated;
        3. бронь, из которой создана запись, становится completed.
        False - стол успел уйти другому или запись уже обработана
        """
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE tables SET claimant_id = ?, occupied = ?
                WHERE id = ? AND occupied = 0
                AND (claimant_id IS NULL OR claimant_id = ?)
            """, (entry.client_id, int(occupy), table_id, entry.client_id))
            if cursor.rowcount == 0:
                return False

            cursor.execute("""
                UPDATE waiting_list SET status = 'seated', seated_at = ?, updated_at = ?
                WHERE id = ? AND status IN ('waiting', 'displaced')
            """, (_ts(seated_at), _ts(seated_at), entry.id))
            if cursor.rowcount == 0:
                conn.rollback()
                return False

            if entry.reservation_id is not None:
                cursor.execute("""
                    UPDATE reservations SET status = 'completed', updated_at = ?
                    WHERE id = ? AND status = 'approved'
                """, (_ts(seated_at), entry.reservation_id))
            return True

    @staticmethod
    def _row_to_entry(row) -> WaitingListEntry:
        """Преобразование строки БД в объект WaitingListEntry"""
        return WaitingListEntry(
            id=row['id'],
            client_id=row['client_id'],
            party_size=row['party_size'],
            preferred_table_type=row['preferred_table_type'],
            special_requests=row['special_requests'],
            status=row['status'],
            priority=row['priority'],
            reservation_id=row['reservation_id'],
            joined_at=_parse_ts(row['joined_at']),
            seated_at=_parse_ts(row['seated_at']),
            cancelled_at=_parse_ts(row['cancelled_at'])
        )


def is_unique_violation(error: sqlite3.IntegrityError) -> bool:
    """Нарушение уникального индекса (а не внешнего ключа или CHECK)"""
    return 'UNIQUE' in str(error).upper()
