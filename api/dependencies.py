"""
Зависимости REST API: сервисы и текущий пользователь
"""
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.identity import Actor, IdentityProvider, require_role
from services.notifications import LoggingNotifier
from services.reservations import ReservationService
from services.sweeper import ActivationSweeper
from services.tables import TableRegistry
from services.waiting_list import WaitingListService

notifier = LoggingNotifier()
reservation_service = ReservationService(notifier)
waiting_list_service = WaitingListService(notifier)
table_registry = TableRegistry()
sweeper = ActivationSweeper(notifier)
identity_provider = IdentityProvider()

bearer_scheme = HTTPBearer(auto_error=False)


def configure_notifier(new_notifier):
    """Подключение другого канала уведомлений (например, Telegram)"""
    for service in (reservation_service, waiting_list_service, sweeper):
        service.notifier = new_notifier


def get_reservation_service() -> ReservationService:
    return reservation_service


def get_waiting_list_service() -> WaitingListService:
    return waiting_list_service


def get_table_registry() -> TableRegistry:
    return table_registry


def get_sweeper() -> ActivationSweeper:
    return sweeper


def get_identity_provider() -> IdentityProvider:
    return identity_provider


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Actor:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Требуется авторизация")

    actor = provider.resolve(credentials.credentials)
    if actor is None:
        raise HTTPException(status_code=401, detail="Недействительный токен")
    return actor


def require_roles(*roles: str):
    """Зависимость: пользователь с одной из ролей"""

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        require_role(actor, roles)
        return actor

    return dependency
