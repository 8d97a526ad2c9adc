"""
Transaction service: read-through cache over the transaction store.

The list endpoint reads through the cache with stale tracking. Any mutation
that succeeds invalidates the cached list so the next read recomputes it.
"""

from __future__ import annotations

import logging
from typing import Optional

from fintrack.cache import TTLCache
from fintrack.config import AppConfig
from fintrack.models import (
    Transaction,
    TransactionCreate,
    TransactionListResponse,
    TransactionUpdate,
)
from fintrack.store import TransactionStore

logger = logging.getLogger(__name__)

CACHE_KEY = "transactions_list"


class TransactionService:
    """
    Produces transaction responses, caching the full list.

    The cache holds a tuple snapshot of the list so later store mutations
    cannot alter a cached value in place.
    """

    def __init__(
        self, config: AppConfig, store: TransactionStore, cache: TTLCache
    ) -> None:
        self._config = config
        self._store = store
        self._cache = cache
        self._cache_config = config.cache_config()
        # Bumped by every successful write
        self._generation = 0

    def list_transactions(self) -> TransactionListResponse:
        """Serve the list from cache if present (possibly stale), else compute it."""
        cached, is_stale = self._cache.get_with_stale(CACHE_KEY)
        if cached is not None:
            if is_stale:
                logger.debug("Serving stale transaction list")
            return TransactionListResponse(
                data=list(cached), from_cache=True, is_stale=is_stale
            )

        logger.debug("Transaction list cache miss")
        data = self._populate()
        return TransactionListResponse(data=list(data), from_cache=False, is_stale=False)

    def refresh(self) -> None:
        """Recompute the cached list. Run out of band after a stale read."""
        self._populate()
        logger.info("Refreshed transaction list cache")

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._store.get(transaction_id)

    def create_transaction(
        self, payload: TransactionCreate, user_id: Optional[str] = None
    ) -> Transaction:
        transaction = self._store.create(
            payload, user_id=user_id or self._config.default_user_id
        )
        self._invalidate()
        return transaction

    def update_transaction(
        self, transaction_id: str, changes: TransactionUpdate
    ) -> Optional[Transaction]:
        """
        Returns None if the id is unknown. The cache is left alone when the id
        is unknown or the body carried no fields.
        """
        if not changes.model_fields_set:
            return self._store.get(transaction_id)
        transaction = self._store.update(transaction_id, changes)
        if transaction is not None:
            self._invalidate()
        return transaction

    def delete_transaction(self, transaction_id: str) -> bool:
        deleted = self._store.delete(transaction_id)
        if deleted:
            self._invalidate()
        return deleted

    def _populate(self) -> tuple[Transaction, ...]:
        """Snapshot the store into the cache unless a write lands meanwhile."""
        generation = self._generation
        data = tuple(self._store.list())
        if generation != self._generation:
            logger.debug("Write during list snapshot; not caching it")
            return data
        self._cache.set(CACHE_KEY, data, self._cache_config)
        return data

    def _invalidate(self) -> None:
        self._generation += 1
        self._cache.clear(CACHE_KEY)
        logger.debug("Invalidated transaction list cache")
