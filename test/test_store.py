"""Tests for transaction models and the in-memory store."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from fintrack.models import TransactionCreate, TransactionType, TransactionUpdate
from fintrack.store import TransactionStore


def _payload(**overrides):
    data = {
        "title": "Coffee",
        "amount": 3.5,
        "type": "expense",
        "category": "Food",
        "date": "2024-12-20T08:30:00Z",
    }
    data.update(overrides)
    return data


class TestTransactionCreate:
    def test_valid(self):
        payload = TransactionCreate(**_payload())
        assert payload.type == TransactionType.expense
        assert payload.date == datetime(2024, 12, 20, 8, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": ""},
            {"title": "   "},
            {"title": "x" * 101},
            {"amount": 0},
            {"amount": -10},
            {"type": "transfer"},
            {"category": ""},
            {"category": "c" * 51},
            {"date": "not-a-date"},
        ],
    )
    def test_invalid(self, overrides):
        with pytest.raises(ValidationError):
            TransactionCreate(**_payload(**overrides))

    def test_missing_fields(self):
        with pytest.raises(ValidationError):
            TransactionCreate(title="Coffee")

    def test_update_rejects_blank_title(self):
        with pytest.raises(ValidationError):
            TransactionUpdate(title="  ")

    def test_update_allows_partial(self):
        changes = TransactionUpdate(amount=9.99)
        assert changes.title is None

    def test_update_rejects_explicit_null(self):
        with pytest.raises(ValidationError, match="not null"):
            TransactionUpdate(title=None)

    def test_update_changes_only_sent_fields(self):
        assert TransactionUpdate(amount=9.99).changes() == {"amount": 9.99}
        assert TransactionUpdate().changes() == {}


class TestTransactionStore:
    def test_seeded(self):
        store = TransactionStore()
        items = store.list()
        assert len(items) == 5
        assert items[0].id == "5"  # newest first

    def test_unseeded_is_empty(self):
        assert TransactionStore(seed=False).list() == []

    def test_list_returns_copy(self):
        store = TransactionStore()
        items = store.list()
        items.clear()
        assert len(store.list()) == 5

    def test_create_prepends(self):
        store = TransactionStore()
        created = store.create(TransactionCreate(**_payload()), user_id="user-9")
        assert created.user_id == "user-9"
        assert created.title == "Coffee"
        assert store.list()[0] == created
        assert store.get(created.id) == created

    def test_create_assigns_unique_ids(self):
        store = TransactionStore(seed=False)
        a = store.create(TransactionCreate(**_payload()), user_id="u")
        b = store.create(TransactionCreate(**_payload()), user_id="u")
        assert a.id != b.id

    def test_get_missing(self):
        assert TransactionStore().get("nope") is None

    def test_update(self):
        store = TransactionStore()
        updated = store.update("3", TransactionUpdate(amount=75.0))
        assert updated is not None
        assert updated.amount == 75.0
        assert updated.title == "Electricity bill"
        assert store.get("3").amount == 75.0

    def test_update_missing(self):
        assert TransactionStore().update("nope", TransactionUpdate(amount=1)) is None

    def test_delete(self):
        store = TransactionStore()
        assert store.delete("1") is True
        assert store.get("1") is None
        assert len(store.list()) == 4

    def test_delete_missing(self):
        assert TransactionStore().delete("nope") is False

    def test_create_stamps_server_time(self):
        store = TransactionStore()
        before = datetime.now(timezone.utc)
        created = store.create(TransactionCreate(**_payload()), user_id="u")
        after = datetime.now(timezone.utc)
        assert before <= created.date <= after
        assert created.date != datetime(2024, 12, 20, 8, 30, tzinfo=timezone.utc)

    def test_update_leaves_unsent_fields(self):
        store = TransactionStore()
        original = store.get("2")
        updated = store.update("2", TransactionUpdate(category="Market"))
        assert updated.category == "Market"
        assert updated.title == original.title
        assert updated.amount == original.amount
        assert updated.date == original.date
