"""Unit tests for the session store and its storage."""

import json
import os
import shutil
import tempfile

import pytest

from marketplace_identity.session.models import Provider, SessionIdentity
from marketplace_identity.session.storage import (
    JsonFileStorage,
    MemoryStorage,
    get_language,
    set_language,
)
from marketplace_identity.session.store import SessionStore
from marketplace_identity.utils.errors import ValidationError

from conftest import make_identity


class TestSessionIdentity:
    """Tests for the identity value type."""

    def test_from_dict_keeps_id_type(self):
        assert SessionIdentity.from_dict({"id": 7}).id == 7
        assert SessionIdentity.from_dict({"id": "7"}).id == "7"

    def test_round_trip_preserves_unknown_fields(self):
        data = {
            "id": 3,
            "name": "Ana",
            "email": "ana@x.com",
            "avatar": "https://img/ana.png",
            "verified": True,
            "provider": "google",
            "phone": "+15550100",
            "createdAt": "2024-01-01T00:00:00Z",
        }
        identity = SessionIdentity.from_dict(data)

        assert identity.provider is Provider.GOOGLE
        assert identity.extra == {"phone": "+15550100", "createdAt": "2024-01-01T00:00:00Z"}
        assert identity.to_dict() == data

    def test_unknown_provider_falls_back_to_local(self):
        assert SessionIdentity.from_dict({"id": 1, "provider": "myspace"}).provider is Provider.LOCAL

    def test_missing_id_is_rejected(self):
        with pytest.raises(ValueError):
            SessionIdentity.from_dict({"email": "a@b.com"})
        with pytest.raises(ValueError):
            SessionIdentity.from_dict(["not", "a", "dict"])


class TestSessionStore:
    """Tests for SessionStore set/clear/load semantics."""

    def test_load_absent_when_storage_empty(self, store):
        assert store.load() is None
        assert not store.is_authenticated

    def test_set_then_load_in_fresh_store(self, storage, store):
        identity = make_identity(7, name="Ana")
        store.set(identity, "t1")

        fresh = SessionStore(storage)
        session = fresh.load()

        assert session is not None
        assert session.identity == identity
        assert session.identity.id == 7
        assert session.token == "t1"

    def test_set_clear_load_is_absent(self, storage, store):
        store.set(make_identity(), "t1")
        store.clear()

        assert SessionStore(storage).load() is None
        assert storage.get("user") is None
        assert storage.get("token") is None

    def test_clear_is_idempotent(self, store):
        store.clear()
        store.clear()
        assert store.session is None

    def test_half_persisted_pair_loads_as_absent(self):
        only_user = MemoryStorage({"user": {"id": 1}})
        only_token = MemoryStorage({"token": "t1"})

        assert SessionStore(only_user).load() is None
        assert SessionStore(only_token).load() is None

    def test_corrupt_user_loads_as_absent(self):
        storage = MemoryStorage({"user": "{not json", "token": "t1"})
        assert SessionStore(storage).load() is None

        storage = MemoryStorage({"user": {"name": "no id"}, "token": "t1"})
        assert SessionStore(storage).load() is None

    def test_serialized_user_string_is_accepted(self):
        storage = MemoryStorage({"user": json.dumps({"id": "u-1"}), "token": "t1"})
        session = SessionStore(storage).load()
        assert session.identity.id == "u-1"

    def test_update_identity_keeps_token(self, store):
        store.set(make_identity(7, name="Old"), "t1")
        store.update_identity(make_identity(7, name="New"))

        assert store.identity.name == "New"
        assert store.token == "t1"

    def test_update_identity_without_session_raises(self, store):
        with pytest.raises(ValidationError):
            store.update_identity(make_identity())
        assert store.session is None

    def test_set_requires_token(self, store):
        with pytest.raises(ValidationError):
            store.set(make_identity(), "")
        assert store.session is None

    def test_listeners_are_notified_synchronously(self, store):
        seen = []
        store.subscribe(lambda session: seen.append(
            (session.identity.id, session.token) if session else None
        ))

        store.set(make_identity(7), "t1")
        store.update_identity(make_identity(7, name="Ana"))
        store.clear()

        assert seen == [(7, "t1"), (7, "t1"), None]

    def test_listener_sees_consistent_state(self, store):
        observed = []
        store.subscribe(lambda session: observed.append(
            (store.is_authenticated, store.identity is not None, store.token is not None)
        ))

        store.set(make_identity(), "t1")
        store.clear()

        assert observed == [(True, True, True), (False, False, False)]

    def test_unsubscribe(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()
        store.set(make_identity(), "t1")
        assert seen == []

    def test_set_with_stale_epoch_is_disregarded(self, store):
        epoch = store.epoch
        store.clear()

        assert store.set(make_identity(), "t1", epoch=epoch) is False
        assert store.session is None

    def test_set_with_current_epoch_applies(self, store):
        epoch = store.epoch
        assert store.set(make_identity(), "t1", epoch=epoch) is True
        assert store.is_authenticated


class TestJsonFileStorage:
    """Tests for the JSON file backed storage."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.temp_dir, "storage.json")

    def teardown_method(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_set_many_and_remove(self):
        storage = JsonFileStorage(self.path)
        storage.set_many({"user": {"id": 1}, "token": "t1", "language": "fr"})
        storage.remove("user", "token")

        assert storage.keys() == ["language"]
        with open(self.path) as f:
            assert json.load(f) == {"language": "fr"}

    def test_session_survives_new_process(self):
        SessionStore(JsonFileStorage(self.path)).set(make_identity("abc"), "t9")

        session = SessionStore(JsonFileStorage(self.path)).load()
        assert session.identity.id == "abc"
        assert session.token == "t9"

    def test_corrupt_file_reads_as_empty(self):
        with open(self.path, "w") as f:
            f.write("{ definitely not json")

        storage = JsonFileStorage(self.path)
        assert storage.get("user") is None
        assert SessionStore(storage).load() is None

    def test_non_object_file_reads_as_empty(self):
        with open(self.path, "w") as f:
            json.dump(["user", "token"], f)
        assert JsonFileStorage(self.path).keys() == []

    def test_clear_leaves_language_untouched(self):
        storage = JsonFileStorage(self.path)
        set_language(storage, "es")
        store = SessionStore(storage)
        store.set(make_identity(), "t1")
        store.clear()

        assert get_language(storage) == "es"

    def test_no_temp_files_left_behind(self):
        storage = JsonFileStorage(self.path)
        storage.set("token", "t1")
        assert os.listdir(self.temp_dir) == ["storage.json"]


def test_language_default():
    assert get_language(MemoryStorage()) == "en"
