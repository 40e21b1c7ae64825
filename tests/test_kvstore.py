"""Tests for the key-value media."""

import os
import stat
import sys

import pytest

from vaultify.kvstore import JsonFileStore, MemoryStore


@pytest.fixture
def file_store(tmp_path):
    return JsonFileStore(str(tmp_path / "data"))


class TestJsonFileStore:

    def test_missing_key_is_none(self, file_store):
        assert file_store.get("nothing") is None

    def test_set_get_delete(self, file_store):
        file_store.set("alice@example.com_passwords", {"schema_version": 1, "credentials": []})
        assert file_store.get("alice@example.com_passwords") == {"schema_version": 1, "credentials": []}
        file_store.delete("alice@example.com_passwords")
        assert file_store.get("alice@example.com_passwords") is None

    def test_delete_missing_key(self, file_store):
        file_store.delete("never-written")

    def test_keys_round_trip_unusual_names(self, file_store):
        names = ["authToken", "a/b_passwords", "bob smith_recentActivities"]
        for name in names:
            file_store.set(name, "x")
        assert file_store.keys() == sorted(names)

    def test_no_temp_file_left_behind(self, file_store):
        file_store.set("currentUser", "alice")
        assert [n for n in os.listdir(file_store.directory) if n.endswith(".tmp")] == []

    def test_values_survive_a_new_instance(self, file_store):
        file_store.set("currentUser", "alice")
        assert JsonFileStore(file_store.directory).get("currentUser") == "alice"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_files_are_owner_only(self, file_store):
        file_store.set("alice_masterPassword", "c2VjcmV0")
        path = os.path.join(file_store.directory, "alice_masterPassword.json")
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


class TestMemoryStore:

    def test_returns_copies(self):
        kv = MemoryStore()
        value = {"credentials": [1, 2]}
        kv.set("k", value)
        value["credentials"].append(3)
        fetched = kv.get("k")
        assert fetched == {"credentials": [1, 2]}
        fetched["credentials"].clear()
        assert kv.get("k") == {"credentials": [1, 2]}

    def test_rejects_unserializable_values(self):
        kv = MemoryStore()
        with pytest.raises(TypeError):
            kv.set("k", object())
        assert kv.get("k") is None

    def test_keys_and_delete(self):
        kv = MemoryStore()
        kv.set("b", 1)
        kv.set("a", 2)
        assert kv.keys() == ["a", "b"]
        kv.delete("a")
        kv.delete("a")
        assert kv.keys() == ["b"]
