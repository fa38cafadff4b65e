"""
Состояния для FSM (Finite State Machine)
"""
from aiogram.fsm.state import State, StatesGroup


class JoinQueueStates(StatesGroup):
    """Состояния записи в лист ожидания"""
    entering_party_size = State()
    choosing_table_type = State()


class DecisionStates(StatesGroup):
    """Состояния отклонения брони персоналом"""
    entering_reason = State()
