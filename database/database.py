"""
Модуль для работы с базой данных SQLite
"""
import logging
import sqlite3
import os
from contextlib import contextmanager
from typing import Generator
from config import settings
from services.errors import TransientStoreError

logger = logging.getLogger(__name__)

# Столы по умолчанию: (номер, вместимость, тип)
DEFAULT_TABLES = [
    (1, 2, 'standard'),
    (2, 4, 'standard'),
    (3, 4, 'standard'),
    (4, 6, 'standard'),
    (5, 4, 'vip'),
    (6, 8, 'vip'),
    (7, 4, 'accessible'),
]


def get_connection() -> sqlite3.Connection:
    """Получение подключения к БД"""
    conn = sqlite3.connect(settings.DB_PATH, timeout=settings.DB_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Контекстный менеджер для работы с БД"""
    try:
        conn = get_connection()
    except sqlite3.OperationalError as e:
        raise TransientStoreError("Хранилище временно недоступно") from e
    try:
        yield conn
        conn.commit()
    except sqlite3.OperationalError as e:
        conn.rollback()
        logger.error(f"Ошибка хранилища: {e}")
        raise TransientStoreError("Хранилище временно недоступно") from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(seed: bool = True):
    """Инициализация базы данных"""
    # Создание директории для БД, если не существует
    db_dir = os.path.dirname(settings.DB_PATH)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir)

    with get_db() as conn:
        cursor = conn.cursor()

        # Таблица столов
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tables (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                number INTEGER NOT NULL UNIQUE,
                capacity INTEGER NOT NULL,
                type TEXT NOT NULL DEFAULT 'standard',
                occupied INTEGER NOT NULL DEFAULT 0,
                claimant_id INTEGER,
                assigned_staff_id INTEGER,
                CHECK (occupied = 0 OR claimant_id IS NOT NULL)
            )
        """)

        # Таблица бронирований
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS reservations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                client_id INTEGER NOT NULL,
                table_id INTEGER NOT NULL,
                date TEXT NOT NULL,
                time TEXT NOT NULL,
                party_size INTEGER NOT NULL,
                notes TEXT,
                status TEXT NOT NULL DEFAULT 'pending',
                rejection_reason TEXT,
                approved_by INTEGER,
                approved_at TIMESTAMP,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL,
                FOREIGN KEY (table_id) REFERENCES tables (id)
            )
        """)

        # Не больше одной активной брони на (стол, дата, время)
        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_reservations_active_slot
            ON reservations(table_id, date, time)
            WHERE status IN ('pending', 'approved')
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_reservations_date
            ON reservations(date, status)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_reservations_client
            ON reservations(client_id, status)
        """)

        # Лист ожидания
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS waiting_list (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                client_id INTEGER NOT NULL,
                party_size INTEGER NOT NULL,
                preferred_table_type TEXT,
                special_requests TEXT,
                status TEXT NOT NULL DEFAULT 'waiting',
                priority INTEGER NOT NULL DEFAULT 0,
                reservation_id INTEGER,
                joined_at TIMESTAMP NOT NULL,
                seated_at TIMESTAMP,
                cancelled_at TIMESTAMP,
                updated_at TIMESTAMP NOT NULL,
                FOREIGN KEY (reservation_id) REFERENCES reservations (id)
            )
        """)

        # У клиента не больше одной записи в статусе waiting
        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_waiting_one_per_client
            ON waiting_list(client_id)
            WHERE status = 'waiting'
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_waiting_queue
            ON waiting_list(status, priority, joined_at)
        """)

        if seed:
            # Проверка наличия столов
            cursor.execute("SELECT COUNT(*) as count FROM tables")
            if cursor.fetchone()['count'] == 0:
                cursor.executemany(
                    "INSERT INTO tables (number, capacity, type) VALUES (?, ?, ?)",
                    DEFAULT_TABLES
                )
                logger.info(f"Добавлено столов по умолчанию: {len(DEFAULT_TABLES)}")
