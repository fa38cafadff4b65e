"""
Конфигурация проекта
"""
import os
from dataclasses import dataclass
from typing import Dict, List, Tuple
from datetime import time


def _parse_ids(value: str) -> List[int]:
    """Разбор списка ID из строки вида '1,2,3'"""
    if not value:
        return []
    return [int(item.strip()) for item in value.split(',') if item.strip()]


def _parse_tokens(value: str) -> Dict[str, int]:
    """Разбор токенов API из строки вида 'token1:101,token2:102'"""
    tokens = {}
    if not value:
        return tokens
    for pair in value.split(','):
        if ':' not in pair:
            continue
        token, user_id = pair.rsplit(':', 1)
        tokens[token.strip()] = int(user_id.strip())
    return tokens


@dataclass
class Settings:
    """Настройки приложения"""
    # Telegram
    BOT_TOKEN: str = os.getenv('BOT_TOKEN', '')

    # Роли персонала (Telegram ID)
    OWNER_IDS: List[int] = None
    SUPERVISOR_IDS: List[int] = None
    MAITRE_IDS: List[int] = None
    WAITER_IDS: List[int] = None

    # REST API: токен -> ID пользователя
    API_TOKENS: Dict[str, int] = None

    # База данных
    DB_PATH: str = os.getenv('DB_PATH', 'data/restaurant.db')
    DB_TIMEOUT_SECONDS: float = float(os.getenv('DB_TIMEOUT_SECONDS', '10'))

    # Режим работы: один сервисный день 19:00 - 02:30 (следующего дня)
    OPENING_TIME: time = time(19, 0)
    CLOSING_TIME: time = time(2, 30)
    MORNING_CUTOFF: time = time(3, 0)  # всё раньше - продолжение прошлого вечера

    # Бизнес-правила
    SLOT_STEP_MINUTES: int = 45
    BLOCK_WINDOW_MINUTES: int = 45
    MIN_LEAD_MINUTES: int = 15
    ACTIVATION_WINDOW_MINUTES: int = 45
    EXPIRY_WINDOW_MINUTES: int = 45
    ALTERNATIVE_OFFSETS: Tuple[Tuple[int, ...], ...] = ((-45, 45), (-90, 90))
    MIN_PARTY_SIZE: int = 1
    MAX_PARTY_SIZE: int = 12
    DEFAULT_PRIORITY: int = 0
    RESERVATION_PRIORITY: int = 10
    NIGHT_WRAP_EXEMPTION: bool = os.getenv('NIGHT_WRAP_EXEMPTION', '1') != '0'

    # Планировщик
    SWEEP_INTERVAL_MINUTES: int = int(os.getenv('SWEEP_INTERVAL_MINUTES', '1'))

    def __post_init__(self):
        """Инициализация после создания объекта"""
        if self.OWNER_IDS is None:
            self.OWNER_IDS = _parse_ids(os.getenv('OWNER_IDS', ''))
        if self.SUPERVISOR_IDS is None:
            self.SUPERVISOR_IDS = _parse_ids(os.getenv('SUPERVISOR_IDS', ''))
        if self.MAITRE_IDS is None:
            self.MAITRE_IDS = _parse_ids(os.getenv('MAITRE_IDS', ''))
        if self.WAITER_IDS is None:
            self.WAITER_IDS = _parse_ids(os.getenv('WAITER_IDS', ''))
        if self.API_TOKENS is None:
            self.API_TOKENS = _parse_tokens(os.getenv('API_TOKENS', ''))

    def is_admin(self, user_id: int) -> bool:
        """Проверка, является ли пользователь владельцем или супервайзером"""
        return user_id in self.OWNER_IDS or user_id in self.SUPERVISOR_IDS

    def is_staff(self, user_id: int) -> bool:
        """Проверка, является ли пользователь сотрудником"""
        return (
            self.is_admin(user_id)
            or user_id in self.MAITRE_IDS
            or user_id in self.WAITER_IDS
        )


# Глобальный экземпляр настроек
settings = Settings()
