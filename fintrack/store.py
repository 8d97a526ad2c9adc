"""
In-memory transaction store.

Stands in for a database: a list held for the life of the process, newest
first. Lost on restart.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from fintrack.models import (
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
)


def _seed_transactions() -> list[Transaction]:
    def tx(tx_id, title, amount, type_, category, day):
        return Transaction(
            id=tx_id,
            user_id="user-123",
            title=title,
            amount=amount,
            type=type_,
            category=category,
            date=datetime(2024, 12, day, tzinfo=timezone.utc),
        )

    return [
        tx("5", "Restaurant dinner", 85.0, TransactionType.expense, "Food", 14),
        tx("4", "Freelance project", 1200.0, TransactionType.income, "Work", 12),
        tx("3", "Electricity bill", 60.5, TransactionType.expense, "Utilities", 10),
        tx("2", "Groceries", 150.25, TransactionType.expense, "Food", 5),
        tx("1", "Monthly salary", 3500.0, TransactionType.income, "Salary", 1),
    ]


class TransactionStore:
    """List-backed store. Not thread-safe; one instance per process."""

    def __init__(self, seed: bool = True) -> None:
        self._items: list[Transaction] = _seed_transactions() if seed else []

    def list(self) -> list[Transaction]:
        """Return a copy of all transactions, newest first."""
        return list(self._items)

    def get(self, transaction_id: str) -> Optional[Transaction]:
        for item in self._items:
            if item.id == transaction_id:
                return item
        return None

    def create(self, payload: TransactionCreate, user_id: str) -> Transaction:
        """Insert at the front. The date is stamped with the current server time."""
        transaction = Transaction(
            id=uuid.uuid4().hex,
            user_id=user_id,
            **{**payload.model_dump(), "date": datetime.now(timezone.utc)},
        )
        self._items.insert(0, transaction)
        return transaction

    def update(
        self, transaction_id: str, changes: TransactionUpdate
    ) -> Optional[Transaction]:
        """Apply the fields the caller sent. Returns None if the id is unknown."""
        for index, item in enumerate(self._items):
            if item.id == transaction_id:
                updated = item.model_copy(update=changes.changes())
                self._items[index] = updated
                return updated
        return None

    def delete(self, transaction_id: str) -> bool:
        for index, item in enumerate(self._items):
            if item.id == transaction_id:
                del self._items[index]
                return True
        return False
