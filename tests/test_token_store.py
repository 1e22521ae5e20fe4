"""Token store tests against an in-memory SQLite database."""

from datetime import datetime, timedelta

from conftest import NOW
from seller_admin.database import get_db_session
from seller_admin.models import WalmartToken
from seller_admin.token_store import WalmartTokenStore


def _upsert(store, user_id="user-1", **overrides):
    fields = {
        "access_token": "blob-access",
        "refresh_token": "blob-refresh",
        "token_type": "Bearer",
        "expires_in": 3600,
        "expires_at": NOW + timedelta(hours=1),
        "scope": "item orders",
        "seller_id": "seller-42",
    }
    fields.update(overrides)
    return store.upsert(user_id, **fields)


def _row_count(session_factory) -> int:
    with get_db_session(session_factory) as db:
        return db.query(WalmartToken).count()


def test_upsert_inserts_row(store):
    row = _upsert(store)

    assert row.id is not None
    assert row.user_id == "user-1"
    assert row.created_at is not None
    assert row.updated_at is not None


def test_upsert_replaces_existing_row(store, session_factory):
    first = _upsert(store)
    second = _upsert(
        store,
        access_token="blob-access-2",
        refresh_token=None,
        seller_id=None,
        expires_at=NOW + timedelta(hours=2),
    )

    assert second.id == first.id
    assert _row_count(session_factory) == 1

    stored = store.get("user-1")
    assert stored.access_token == "blob-access-2"
    assert stored.refresh_token is None
    assert stored.seller_id is None
    assert stored.expires_at == NOW + timedelta(hours=2)


def test_rows_are_per_user(store, session_factory):
    _upsert(store, "user-1")
    _upsert(store, "user-2", access_token="other")

    assert _row_count(session_factory) == 2
    assert store.get("user-2").access_token == "other"


def test_get_missing_returns_none(store):
    assert store.get("nobody") is None


def test_delete_is_idempotent(store):
    _upsert(store)

    assert store.delete("user-1") is True
    assert store.get("user-1") is None
    assert store.delete("user-1") is False


def test_upsert_over_row_written_elsewhere(store, session_factory):
    past = datetime(2020, 1, 1)
    with get_db_session(session_factory) as db:
        db.add(
            WalmartToken(
                user_id="user-1",
                access_token="old-access",
                expires_in=60,
                expires_at=past,
                created_at=past,
                updated_at=past,
            )
        )

    row = _upsert(store, access_token="new-access")

    assert _row_count(session_factory) == 1
    assert row.access_token == "new-access"
    assert row.expires_at == NOW + timedelta(hours=1)
    assert row.created_at == past
    assert row.updated_at > past


def test_two_stores_write_the_same_user(session_factory):
    first = WalmartTokenStore(session_factory)
    second = WalmartTokenStore(session_factory)

    a = _upsert(first, access_token="from-first")
    b = _upsert(second, access_token="from-second")

    assert a.id == b.id
    assert _row_count(session_factory) == 1
    assert first.get("user-1").access_token == "from-second"


def test_upsert_without_on_conflict_support(store, session_factory, monkeypatch):
    monkeypatch.setattr("seller_admin.token_store._UPSERT_INSERTS", {})

    first = _upsert(store)
    second = _upsert(store, access_token="blob-access-2", seller_id=None)

    assert second.id == first.id
    assert _row_count(session_factory) == 1
    assert store.get("user-1").access_token == "blob-access-2"
    assert store.get("user-1").seller_id is None
