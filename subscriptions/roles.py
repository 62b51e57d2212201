"""
Host role capability.

The grant engine only assigns roles the host reports as editable; the sweeper
and manual adjustment need to set roles and check that a user exists. Hosts
plug in their own directory; two are provided here.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from .config import get_editable_roles
from .db import SubscriberUser

logger = logging.getLogger(__name__)


class RoleDirectory(ABC):
    @abstractmethod
    def is_valid_role(self, role: str) -> bool:
        ...

    @abstractmethod
    def user_exists(self, user_id: str) -> bool:
        ...

    @abstractmethod
    def get_role(self, user_id: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_role(self, user_id: str, role: str) -> bool:
        """Set the user's single role. Returns False when the user is unknown."""


class InMemoryRoleDirectory(RoleDirectory):
    def __init__(
        self,
        editable_roles: Optional[Iterable[str]] = None,
        users: Optional[Dict[str, Optional[str]]] = None,
    ) -> None:
        roles = get_editable_roles() if editable_roles is None else editable_roles
        self.editable_roles = frozenset(roles)
        self.users: Dict[str, Optional[str]] = dict(users or {})

    def is_valid_role(self, role: str) -> bool:
        return role in self.editable_roles

    def user_exists(self, user_id: str) -> bool:
        return user_id in self.users

    def get_role(self, user_id: str) -> Optional[str]:
        return self.users.get(user_id)

    def set_role(self, user_id: str, role: str) -> bool:
        if user_id not in self.users:
            logger.warning("subscription_role_unknown_user", extra={"user_id": user_id, "role": role})
            return False
        self.users[user_id] = role
        return True


class SqlRoleDirectory(RoleDirectory):
    """Role directory over the users table."""

    def __init__(self, db_session: Session, editable_roles: Optional[Iterable[str]] = None) -> None:
        self.db_session = db_session
        roles = get_editable_roles() if editable_roles is None else editable_roles
        self.editable_roles = frozenset(roles)

    def _user(self, user_id: str) -> Optional[SubscriberUser]:
        return self.db_session.query(SubscriberUser).filter(SubscriberUser.user_id == user_id).first()

    def is_valid_role(self, role: str) -> bool:
        return role in self.editable_roles

    def user_exists(self, user_id: str) -> bool:
        return self._user(user_id) is not None

    def get_role(self, user_id: str) -> Optional[str]:
        user = self._user(user_id)
        return user.role if user else None

    def set_role(self, user_id: str, role: str) -> bool:
        user = self._user(user_id)
        if user is None:
            logger.warning("subscription_role_unknown_user", extra={"user_id": user_id, "role": role})
            return False
        user.role = role
        self.db_session.commit()
        return True
