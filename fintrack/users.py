"""
In-memory user directory: admin user management and credential checks.

Passwords never leave this module; every public method returns `User`.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Optional

from fintrack.models import User, UserCreate, UserUpdate
from fintrack.roles import Role

logger = logging.getLogger(__name__)


class UserError(Exception):
    """Raised when a user change would break a directory rule."""


class DuplicateEmailError(UserError):
    def __init__(self, email: str):
        super().__init__(f"Email '{email}' is already registered")
        self.email = email


class LastAdminError(UserError):
    def __init__(self):
        super().__init__("Cannot remove or demote the last admin")


@dataclass(frozen=True)
class _UserRecord:
    id: str
    email: str
    password: str
    name: str
    role: Role
    created_at: date
    updated_at: date

    def public(self) -> User:
        return User(
            id=self.id,
            email=self.email,
            name=self.name,
            role=self.role,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def _seed_users() -> list[_UserRecord]:
    return [
        _UserRecord("1", "test@example.com", "123456", "Test User",
                    Role.user, date(2024, 1, 1), date(2024, 1, 1)),
        _UserRecord("2", "felipe@example.com", "123456", "Felipe Bonilla",
                    Role.user, date(2024, 1, 2), date(2024, 1, 2)),
        _UserRecord("3", "admin@example.com", "admin123", "Admin User",
                    Role.admin, date(2024, 1, 1), date(2024, 1, 1)),
        _UserRecord("4", "viewer@example.com", "password123", "Viewer User",
                    Role.viewer, date(2024, 1, 3), date(2024, 1, 3)),
    ]


def _today() -> date:
    return datetime.now(timezone.utc).date()


class UserStore:
    """
    List-backed user directory. Not thread-safe; one instance per process.

    Rules:
    - emails are unique (DuplicateEmailError)
    - at least one admin remains once one exists (LastAdminError)
    """

    def __init__(self, seed: bool = True) -> None:
        self._items: list[_UserRecord] = _seed_users() if seed else []

    def list(self) -> list[User]:
        return [record.public() for record in self._items]

    def get(self, user_id: str) -> Optional[User]:
        index = self._index(user_id)
        if index is None:
            return None
        return self._items[index].public()

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user if email and password match, else None."""
        for record in self._items:
            if record.email == email and hmac.compare_digest(
                record.password.encode(), password.encode()
            ):
                return record.public()
        return None

    def create(self, payload: UserCreate) -> User:
        if self._email_taken(payload.email):
            raise DuplicateEmailError(payload.email)
        today = _today()
        record = _UserRecord(
            id=self._next_id(),
            email=payload.email,
            password=payload.password,
            name=payload.name,
            role=payload.role,
            created_at=today,
            updated_at=today,
        )
        self._items.append(record)
        logger.info("Created user %s (%s)", record.id, record.role.value)
        return record.public()

    def update(self, user_id: str, changes: UserUpdate) -> Optional[User]:
        """Apply the fields the caller sent. Returns None if the id is unknown."""
        index = self._index(user_id)
        if index is None:
            return None
        record = self._items[index]
        fields = changes.changes()

        email = fields.get("email")
        if email is not None and email != record.email and self._email_taken(email, exclude=user_id):
            raise DuplicateEmailError(email)

        role = fields.get("role")
        if record.role == Role.admin and role is not None and role != Role.admin:
            if self._admin_count() <= 1:
                raise LastAdminError()

        updated = replace(record, **fields, updated_at=_today())
        self._items[index] = updated
        return updated.public()

    def delete(self, user_id: str) -> bool:
        index = self._index(user_id)
        if index is None:
            return False
        if self._items[index].role == Role.admin and self._admin_count() <= 1:
            raise LastAdminError()
        del self._items[index]
        logger.info("Deleted user %s", user_id)
        return True

    def _index(self, user_id: str) -> Optional[int]:
        for index, record in enumerate(self._items):
            if record.id == user_id:
                return index
        return None

    def _email_taken(self, email: str, exclude: Optional[str] = None) -> bool:
        return any(r.email == email and r.id != exclude for r in self._items)

    def _admin_count(self) -> int:
        return sum(1 for r in self._items if r.role == Role.admin)

    def _next_id(self) -> str:
        numeric = [int(r.id) for r in self._items if r.id.isdigit()]
        return str(max(numeric, default=0) + 1)
