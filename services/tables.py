"""
Реестр столов: чтение состояния зала
"""
from dataclasses import dataclass, field
from typing import List, Optional

from database.models import Table
from database.repository import TableRepository
from services.errors import NotFoundError, ValidationError


@dataclass
class TablesStatus:
    """Сводка по залу"""
    tables: List[Table] = field(default_factory=list)
    occupied: int = 0
    assigned: int = 0
    available: int = 0
    total_capacity: int = 0
    occupied_capacity: int = 0
    assigned_capacity: int = 0


class TableRegistry:
    """Столы и их текущее состояние"""

    @staticmethod
    def get_table(table_id: int) -> Table:
        table = TableRepository.get_table_by_id(table_id)
        if table is None:
            raise NotFoundError("Стол не найден")
        return table

    @staticmethod
    def get_table_by_number(number: int) -> Table:
        table = TableRepository.get_table_by_number(number)
        if table is None:
            raise NotFoundError(f"Стол №{number} не найден")
        return table

    @staticmethod
    def find_table(table_id: Optional[int] = None, number: Optional[int] = None) -> Table:
        """Стол по ID (REST) или по номеру (код на столе, команды бота)"""
        if table_id is not None:
            return TableRegistry.get_table(table_id)
        if number is not None:
            return TableRegistry.get_table_by_number(number)
        raise ValidationError("Укажите стол")

    @staticmethod
    def list_tables() -> List[Table]:
        return TableRepository.get_all_tables()

    @staticmethod
    def get_tables_status() -> TablesStatus:
        """Все столы с количеством занятых, закреплённых и свободных"""
        status = TablesStatus(tables=TableRepository.get_all_tables())

        for table in status.tables:
            status.total_capacity += table.capacity
            if table.occupied:
                status.occupied += 1
                status.occupied_capacity += table.capacity
            elif table.claimant_id is not None:
                status.assigned += 1
                status.assigned_capacity += table.capacity
            else:
                status.available += 1

        return status
