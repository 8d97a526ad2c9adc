"""
Pydantic request and response models for the fintrack API.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from fintrack.roles import Permission, Role

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class SharePermission(str, Enum):
    read = "read"
    edit = "edit"


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class _PartialUpdate(BaseModel):
    """Base for PUT bodies: omitted fields are left unchanged, explicit nulls are rejected."""

    @model_validator(mode="after")
    def reject_explicit_nulls(self):
        nulls = sorted(name for name in self.model_fields_set if getattr(self, name) is None)
        if nulls:
            raise ValueError(f"fields may be omitted but not null: {', '.join(nulls)}")
        return self

    def changes(self) -> dict:
        """The fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TransactionCreate(BaseModel):
    """
    Body of POST /v1/transactions.

    `date` must be present and parseable, but the stored transaction is
    stamped with the server time at creation.
    """

    title: str = Field(min_length=1, max_length=100)
    amount: float = Field(gt=0, allow_inf_nan=False)
    type: TransactionType
    category: str = Field(min_length=1, max_length=50)
    date: datetime

    @field_validator("title", "category")
    @classmethod
    def check_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class TransactionUpdate(_PartialUpdate):
    """Body of PUT /v1/transactions/{id}."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    type: Optional[TransactionType] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    date: Optional[datetime] = None

    @field_validator("title", "category")
    @classmethod
    def check_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _not_blank(value)


class Transaction(BaseModel):
    """A single income or expense record."""

    id: str
    user_id: str
    title: str
    amount: float
    type: TransactionType
    category: str
    date: datetime


class TransactionListResponse(BaseModel):
    """Response for GET /v1/transactions."""

    data: list[Transaction]
    from_cache: bool = Field(description="Served from the in-process cache")
    is_stale: bool = Field(
        description="Cached data is past its stale threshold; a refresh has been scheduled"
    )


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------


class ShareCreate(BaseModel):
    """Body of POST /v1/shares. The sharer is the calling user."""

    transaction_id: str = Field(min_length=1)
    shared_with: str = Field(min_length=1)
    permission: SharePermission


class SharedTransaction(BaseModel):
    transaction_id: str
    user_id: str = Field(description="Owner who shared the transaction")
    shared_with: str
    permission: SharePermission
    shared_at: date


class SharesResponse(BaseModel):
    """Response for GET /v1/shares."""

    shared_with_user: list[SharedTransaction]
    shared_by_user: list[SharedTransaction]


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(BaseModel):
    """A user as exposed by the API. Never carries the password."""

    id: str
    email: str
    name: str
    role: Role
    created_at: date
    updated_at: date


class UserCreate(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)
    role: Role


class UserUpdate(_PartialUpdate):
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: Optional[Role] = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RolePermissionsResponse(BaseModel):
    role: Role
    permissions: list[Permission]
