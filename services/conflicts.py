"""
Разрешение конфликтов временных окон

Чистая логика без обращения к БД: на вход подаются времена уже существующих
броней одного стола на один сервисный день.
"""
from datetime import time
from typing import Callable, Iterable, List, Optional, Sequence

from config import settings
from database.models import TimeSlot
from utils.time_utils import (
    get_canonical_slots, is_early_morning, is_night, service_minutes, shift_time
)


def is_night_wrap_pair(a: time, b: time) -> bool:
    """Одно время вечернее, другое раннеутреннее"""
    return (is_night(a) and is_early_morning(b)) or (is_night(b) and is_early_morning(a))


def times_conflict(candidate: time, existing: time) -> bool:
    """
    Попадает ли candidate в окно блокировки существующей брони
    [existing - 45, existing + 45] (границы включительно)
    """
    if settings.NIGHT_WRAP_EXEMPTION and is_night_wrap_pair(candidate, existing):
        return False
    distance = abs(service_minutes(candidate) - service_minutes(existing))
    return distance <= settings.BLOCK_WINDOW_MINUTES


def is_time_free(candidate: time, existing_times: Iterable[time]) -> bool:
    """Свободно ли время относительно набора существующих броней"""
    return not any(times_conflict(candidate, existing) for existing in existing_times)


def get_slots_availability(existing_times: Sequence[time],
                           table_id: Optional[int] = None,
                           slots: Optional[Sequence[time]] = None) -> List[TimeSlot]:
    """Сетка слотов с отметкой свободен/занят для одного стола"""
    if slots is None:
        slots = get_canonical_slots()
    return [
        TimeSlot(time=slot, available=is_time_free(slot, existing_times), table_id=table_id)
        for slot in slots
    ]


def suggest_alternatives(requested: time, is_available: Callable[[time], bool],
                         offset_tiers: Optional[Sequence[Sequence[int]]] = None) -> List[time]:
    """
    Альтернативное время, ближайшие варианты первыми: сначала проверяем
    ±45 минут, и только если там пусто - ±90. Время за пределами часов
    работы отбрасывается. Результат в хронологическом порядке
    """
    if offset_tiers is None:
        offset_tiers = settings.ALTERNATIVE_OFFSETS

    for tier in offset_tiers:
        candidates = [shift_time(requested, offset) for offset in tier]
        found = [c for c in candidates if c is not None and is_available(c)]
        if found:
            return sorted(set(found), key=service_minutes)
    return []
