"""
Утилиты для работы со временем и расписанием

Ресторан работает одним непрерывным сервисным днём: с 19:00 до 02:30
следующих календарных суток. Всё, что раньше 03:00, считается продолжением
вечера предыдущей даты, поэтому время переводится на шкалу "минут сервисного
дня", где 00:15 идёт после 23:30, а не до него.
"""
import re
from datetime import date, datetime, time, timedelta
from typing import List, Optional
from config import settings
from services.errors import ValidationError

MINUTES_IN_DAY = 24 * 60

_TIME_RE = re.compile(r'^([01]?[0-9]|2[0-3]):([0-5][0-9])$')
_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def is_early_morning(t: time) -> bool:
    """Ночное продолжение сервисного дня (до 03:00)"""
    return t < settings.MORNING_CUTOFF


def is_night(t: time) -> bool:
    """Вечерняя часть сервисного дня (с открытия)"""
    return t >= settings.OPENING_TIME


def service_minutes(t: time) -> int:
    """Минуты от полуночи с переносом раннего утра за 24:00"""
    minutes = _minutes(t)
    if is_early_morning(t):
        minutes += MINUTES_IN_DAY
    return minutes


def minutes_to_time(minutes: int) -> time:
    """Обратное преобразование минут сервисного дня во время"""
    minutes %= MINUTES_IN_DAY
    return time(minutes // 60, minutes % 60)


def get_working_hours():
    """
    Получение часов работы в минутах сервисного дня
    Возвращает (открытие, закрытие)
    """
    return service_minutes(settings.OPENING_TIME), service_minutes(settings.CLOSING_TIME)


def is_within_operating_hours(t: time) -> bool:
    """Попадает ли время в часы работы (границы включительно)"""
    open_minutes, close_minutes = get_working_hours()
    return open_minutes <= service_minutes(t) <= close_minutes


def get_canonical_slots() -> List[time]:
    """
    Фиксированная сетка слотов, которую предлагаем клиентам:
    каждые 45 минут от открытия до закрытия включительно
    """
    open_minutes, close_minutes = get_working_hours()
    return [
        minutes_to_time(minutes)
        for minutes in range(open_minutes, close_minutes + 1, settings.SLOT_STEP_MINUTES)
    ]


def shift_time(t: time, offset_minutes: int) -> Optional[time]:
    """Сдвиг времени внутри сервисного дня; None, если выходит за часы работы"""
    minutes = service_minutes(t) + offset_minutes
    open_minutes, close_minutes = get_working_hours()
    if not open_minutes <= minutes <= close_minutes:
        return None
    return minutes_to_time(minutes)


def service_date(moment: datetime) -> date:
    """Сервисный день, к которому относится момент времени"""
    if is_early_morning(moment.time()):
        return moment.date() - timedelta(days=1)
    return moment.date()


def service_day_start(day: date) -> datetime:
    """Начало сервисного дня (граница раннего утра этой даты)"""
    return datetime.combine(day, settings.MORNING_CUTOFF)


def reservation_datetime(day: date, t: time) -> datetime:
    """Реальный момент брони: ранние часы относятся к следующим суткам"""
    moment = datetime.combine(day, t)
    if is_early_morning(t):
        moment += timedelta(days=1)
    return moment


def parse_date(value: str) -> date:
    """Разбор даты формата YYYY-MM-DD"""
    if not value or not _DATE_RE.match(value):
        raise ValidationError("Неверный формат даты. Используйте YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError("Неверный формат даты. Используйте YYYY-MM-DD")


def parse_time(value: str) -> time:
    """Разбор времени формата HH:MM"""
    match = _TIME_RE.match(value or '')
    if not match:
        raise ValidationError("Неверный формат времени. Используйте HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def format_datetime(dt: datetime) -> str:
    """Форматирование datetime для отображения"""
    return dt.strftime("%d.%m.%Y %H:%M")


def format_date(d: date) -> str:
    """Форматирование даты"""
    weekdays = ['Пн', 'Вт', 'Ср', 'Чт', 'Пт', 'Сб', 'Вс']
    return f"{d.strftime('%d.%m')} ({weekdays[d.weekday()]})"


def format_time(t: time) -> str:
    """Форматирование времени"""
    return t.strftime("%H:%M")
