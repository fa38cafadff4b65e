"""
Источник текущего времени для сервисов
"""
from datetime import datetime, timedelta


class SystemClock:
    """Настенные часы (локальное время, как и в БД)"""

    def now(self) -> datetime:
        return datetime.now().replace(microsecond=0)


class FixedClock:
    """Управляемые часы: нужны там, где время должно идти по команде"""

    def __init__(self, now: datetime):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime):
        self._now = now

    def advance(self, **kwargs):
        """Сдвиг времени, аргументы как у timedelta"""
        self._now += timedelta(**kwargs)
