"""
In-memory store of transactions shared between users.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from fintrack.models import ShareCreate, SharedTransaction, SharePermission


def _seed_shares() -> list[SharedTransaction]:
    return [
        SharedTransaction(
            transaction_id="1",
            user_id="1",
            shared_with="2",
            permission=SharePermission.read,
            shared_at=date(2024, 12, 10),
        ),
        SharedTransaction(
            transaction_id="3",
            user_id="2",
            shared_with="1",
            permission=SharePermission.edit,
            shared_at=date(2024, 12, 11),
        ),
    ]


class ShareStore:
    """List-backed share records. Not thread-safe; one instance per process."""

    def __init__(self, seed: bool = True) -> None:
        self._items: list[SharedTransaction] = _seed_shares() if seed else []

    def shared_with(self, user_id: str) -> list[SharedTransaction]:
        """Shares other users granted to user_id."""
        return [s for s in self._items if s.shared_with == user_id]

    def shared_by(self, user_id: str) -> list[SharedTransaction]:
        """Shares user_id granted to others."""
        return [s for s in self._items if s.user_id == user_id]

    def share(self, payload: ShareCreate, user_id: str) -> SharedTransaction:
        """
        Record a share. Sharing the same transaction with the same user again
        replaces the earlier grant.
        """
        self.revoke(payload.transaction_id, payload.shared_with)
        share = SharedTransaction(
            user_id=user_id,
            shared_at=datetime.now(timezone.utc).date(),
            **payload.model_dump(),
        )
        self._items.append(share)
        return share

    def revoke(self, transaction_id: str, shared_with: str) -> bool:
        for index, item in enumerate(self._items):
            if item.transaction_id == transaction_id and item.shared_with == shared_with:
                del self._items[index]
                return True
        return False
