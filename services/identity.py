"""
Идентификация пользователей и проверка ролей
"""
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from config import settings
from services.errors import ForbiddenError


class Role:
    """Роли пользователей"""
    OWNER = 'owner'
    SUPERVISOR = 'supervisor'
    MAITRE = 'maitre'
    WAITER = 'waiter'
    CLIENT = 'client'


# Одобрение броней и полный список
ADMIN_ROLES = (Role.OWNER, Role.SUPERVISOR)
# Работа с очередью и рассадкой
HOST_ROLES = ADMIN_ROLES + (Role.MAITRE,)
# Любой сотрудник зала
STAFF_ROLES = HOST_ROLES + (Role.WAITER,)


@dataclass(frozen=True)
class Actor:
    """Пользователь, от имени которого выполняется действие"""
    user_id: int
    role: str = Role.CLIENT

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_host(self) -> bool:
        return self.role in HOST_ROLES


def resolve_role(user_id: int) -> str:
    """Роль по ID пользователя из настроек"""
    if user_id in settings.OWNER_IDS:
        return Role.OWNER
    if user_id in settings.SUPERVISOR_IDS:
        return Role.SUPERVISOR
    if user_id in settings.MAITRE_IDS:
        return Role.MAITRE
    if user_id in settings.WAITER_IDS:
        return Role.WAITER
    return Role.CLIENT


def actor_for_user(user_id: int) -> Actor:
    """Actor для пользователя Telegram"""
    return Actor(user_id=user_id, role=resolve_role(user_id))


class IdentityProvider:
    """Разрешение bearer-токена в пару (пользователь, роль)"""

    def __init__(self, tokens: Optional[Dict[str, int]] = None):
        self._tokens = tokens if tokens is not None else settings.API_TOKENS

    def resolve(self, credential: str) -> Optional[Actor]:
        user_id = self._tokens.get(credential)
        if user_id is None:
            return None
        return actor_for_user(user_id)


def require_role(actor: Actor, roles: Sequence[str]):
    """ForbiddenError, если роль пользователя не входит в roles"""
    if actor.role not in roles:
        raise ForbiddenError("У вас нет прав на это действие")
