"""Tests for the shared-transaction store."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from fintrack.models import ShareCreate, SharePermission
from fintrack.sharing import ShareStore


class TestShareCreate:
    def test_valid(self):
        payload = ShareCreate(transaction_id="1", shared_with="2", permission="edit")
        assert payload.permission == SharePermission.edit

    @pytest.mark.parametrize("permission", ["owner", "", "READ"])
    def test_rejects_unknown_permission(self, permission):
        with pytest.raises(ValidationError):
            ShareCreate(transaction_id="1", shared_with="2", permission=permission)


class TestShareStore:
    def test_seeded(self):
        store = ShareStore()
        assert [s.transaction_id for s in store.shared_with("2")] == ["1"]
        assert [s.transaction_id for s in store.shared_by("2")] == ["3"]

    def test_unseeded_is_empty(self):
        store = ShareStore(seed=False)
        assert store.shared_with("1") == []
        assert store.shared_by("1") == []

    def test_share(self):
        store = ShareStore(seed=False)
        share = store.share(
            ShareCreate(transaction_id="4", shared_with="2", permission="read"),
            user_id="1",
        )
        assert share.user_id == "1"
        assert share.shared_at == datetime.now(timezone.utc).date()
        assert store.shared_with("2") == [share]
        assert store.shared_by("1") == [share]

    def test_share_again_replaces_grant(self):
        store = ShareStore()
        store.share(
            ShareCreate(transaction_id="1", shared_with="2", permission="edit"),
            user_id="1",
        )
        grants = store.shared_with("2")
        assert len(grants) == 1
        assert grants[0].permission == SharePermission.edit

    def test_revoke(self):
        store = ShareStore()
        assert store.revoke("1", "2") is True
        assert store.shared_with("2") == []

    def test_revoke_missing(self):
        store = ShareStore()
        assert store.revoke("1", "3") is False
        assert len(store.shared_with("2")) == 1
