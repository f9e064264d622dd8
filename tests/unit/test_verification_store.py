"""Unit tests for MongoVerificationStore (mongomock)."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from errors import ConfigurationError, StorageUnavailableError
from infrastructure.verification_store import MongoVerificationStore, VerificationStore
from schemas.models.verification import CodeAlgorithm, Purpose
from shared.crypto import hash_token

TEN_MINUTES = timedelta(minutes=10)


def _create(store, purpose=Purpose.RESET_PASSWORD, target="a@b.com", code="123456", ttl=TEN_MINUTES):
    return store.create(
        purpose, target, hash_token(code), ttl, char_set="digits", code_length=6
    )


def test_satisfies_protocol(store):
    assert isinstance(store, VerificationStore)


class TestCreate:
    def test_returns_record(self, store, clock):
        record = _create(store)
        assert record.purpose == "reset-password"
        assert record.target == "a@b.com"
        assert record.algorithm == CodeAlgorithm.RANDOM
        assert record.created_at == clock.now
        assert record.expires_at == clock.now + TEN_MINUTES

    def test_replaces_existing_for_same_pair(self, store, mock_db):
        first = _create(store, code="111111")
        second = _create(store, code="222222")

        assert first.request_id != second.request_id
        collection = mock_db["verification-requests"]
        assert collection.count_documents({}) == 1
        assert store.find(Purpose.RESET_PASSWORD, "a@b.com").secret == hash_token("222222")

    def test_other_purposes_untouched(self, store, mock_db):
        _create(store, purpose=Purpose.EMAIL_VERIFY)
        _create(store, purpose=Purpose.RESET_PASSWORD)
        assert mock_db["verification-requests"].count_documents({"target": "a@b.com"}) == 2

    def test_non_positive_ttl_raises(self, store):
        with pytest.raises(ConfigurationError):
            _create(store, ttl=timedelta(0))

    def test_sub_millisecond_ttl_raises(self, store, clock):
        clock.advance(microseconds=250)
        with pytest.raises(ConfigurationError):
            _create(store, ttl=timedelta(microseconds=999))

    def test_one_millisecond_ttl_round_trips(self, store, clock):
        clock.advance(microseconds=250)
        _create(store, ttl=timedelta(milliseconds=1))
        record = store.find(Purpose.RESET_PASSWORD, "a@b.com")
        assert record.expires_at > record.created_at

    def test_explicit_issue_time_and_bucket_origin(self, store, clock):
        issued_at = clock.now + timedelta(seconds=7)
        store.create(
            Purpose.RESET_PASSWORD,
            "a@b.com",
            "JBSWY3DPEHPK3PXP",
            TEN_MINUTES,
            algorithm=CodeAlgorithm.TOTP,
            char_set="digits",
            code_length=6,
            period=600,
            digest="sha1",
            bucket_origin=issued_at,
            issued_at=issued_at,
        )
        record = store.find(Purpose.RESET_PASSWORD, "a@b.com")
        assert record.created_at == issued_at
        assert record.bucket_origin == issued_at
        assert record.expires_at == issued_at + TEN_MINUTES

    def test_unique_index_blocks_duplicates(self, store, mock_db):
        record = _create(store)
        duplicate = record.to_mongo()
        duplicate["request_id"] = "other"
        with pytest.raises(DuplicateKeyError):
            mock_db["verification-requests"].insert_one(duplicate)

    def test_stores_naive_utc_datetimes(self, store, mock_db):
        _create(store)
        doc = mock_db["verification-requests"].find_one({})
        assert doc["expires_at"].tzinfo is None

    def test_totp_shape_persisted(self, store):
        store.create(
            Purpose.LOGIN_2FA,
            "a@b.com",
            "JBSWY3DPEHPK3PXP",
            TEN_MINUTES,
            algorithm=CodeAlgorithm.TOTP,
            char_set="digits",
            code_length=6,
            period=30,
            digest="sha1",
            multi_use=True,
        )
        record = store.find(Purpose.LOGIN_2FA, "a@b.com")
        assert record.algorithm == CodeAlgorithm.TOTP
        assert record.period == 30
        assert record.multi_use is True


class TestFind:
    def test_absent(self, store):
        assert store.find(Purpose.RESET_PASSWORD, "nobody@b.com") is None

    def test_expired_is_absent_before_sweep(self, store, clock, mock_db):
        _create(store)
        clock.advance(minutes=10)
        assert store.find(Purpose.RESET_PASSWORD, "a@b.com") is None
        assert mock_db["verification-requests"].count_documents({}) == 1

    def test_accepts_purpose_string(self, store):
        _create(store)
        assert store.find("reset-password", "a@b.com") is not None

    def test_round_trip_is_utc_aware(self, store):
        _create(store)
        record = store.find(Purpose.RESET_PASSWORD, "a@b.com")
        assert record.expires_at.tzinfo is not None


class TestDelete:
    def test_delete_once(self, store):
        record = _create(store)
        assert store.delete(record.request_id) is True
        assert store.delete(record.request_id) is False
        assert store.find(Purpose.RESET_PASSWORD, "a@b.com") is None

    def test_delete_by_old_id_keeps_replacement(self, store):
        old = _create(store, code="111111")
        _create(store, code="222222")
        assert store.delete(old.request_id) is False
        assert store.find(Purpose.RESET_PASSWORD, "a@b.com") is not None

    def test_delete_for(self, store):
        _create(store)
        assert store.delete_for(Purpose.RESET_PASSWORD, "a@b.com") is True
        assert store.delete_for(Purpose.RESET_PASSWORD, "a@b.com") is False


class TestSweep:
    def test_removes_only_expired(self, store, clock, mock_db):
        _create(store, target="old@b.com", ttl=timedelta(minutes=1))
        _create(store, target="new@b.com")
        clock.advance(minutes=5)

        assert store.sweep_expired() == 1
        remaining = [d["target"] for d in mock_db["verification-requests"].find({})]
        assert remaining == ["new@b.com"]

    def test_nothing_to_sweep(self, store):
        assert store.sweep_expired() == 0


class TestStorageFailures:
    @pytest.fixture
    def broken(self, clock):
        collection = MagicMock()
        error = ServerSelectionTimeoutError("no servers")
        for method in (
            "find_one",
            "find_one_and_replace",
            "delete_one",
            "delete_many",
            "create_index",
        ):
            getattr(collection, method).side_effect = error
        return MongoVerificationStore(collection, clock)

    @pytest.mark.parametrize(
        "call",
        [
            lambda s: s.find(Purpose.RESET_PASSWORD, "a@b.com"),
            lambda s: _create(s),
            lambda s: s.delete("abc"),
            lambda s: s.delete_for(Purpose.RESET_PASSWORD, "a@b.com"),
            lambda s: s.sweep_expired(),
            lambda s: s.ensure_indexes(),
        ],
        ids=["find", "create", "delete", "delete_for", "sweep", "ensure_indexes"],
    )
    def test_raises_storage_unavailable(self, broken, call):
        with pytest.raises(StorageUnavailableError):
            call(broken)

    def test_create_retries_upsert_collision(self, clock):
        collection = MagicMock()
        collection.find_one_and_replace.side_effect = [DuplicateKeyError("dup"), None]
        store = MongoVerificationStore(collection, clock)
        _create(store)
        assert collection.find_one_and_replace.call_count == 2
