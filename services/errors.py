"""
Ошибки движка распределения столов
"""


class AllocationError(Exception):
    """Базовая ошибка: message показывается пользователю как есть"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AllocationError):
    """Некорректные или недопустимые входные данные"""


class ConflictError(AllocationError):
    """Слот занят, стол уже удерживается, дубль в листе ожидания"""


class SlotTakenError(ConflictError, ValidationError):
    """Слот уже занят другой бронью"""


class TableAlreadyTakenError(ConflictError):
    """Условная запись проиграла гонку за стол"""


class ForbiddenError(AllocationError):
    """Недостаточно прав для действия"""


class NotFoundError(AllocationError):
    """Бронь, стол или запись не найдены"""


class CapacityError(ValidationError):
    """Стол слишком мал для компании"""


class TransientStoreError(AllocationError):
    """Сбой ввода-вывода хранилища"""
