from mdeditor.storage.kv import InMemoryKeyValueStore, SqliteKeyValueStore


def test_sqlite_store_round_trip(tmp_path) -> None:
    store = SqliteKeyValueStore(tmp_path / "kv.db")

    assert store.get("missing") is None
    store.set("k", "v1")
    store.set("k", "v2")
    assert store.get("k") == "v2"

    store.delete("k")
    assert store.get("k") is None


def test_sqlite_store_is_shared_across_instances(tmp_path) -> None:
    path = tmp_path / "kv.db"
    SqliteKeyValueStore(path).set("theme", "dark")
    assert SqliteKeyValueStore(path).get("theme") == "dark"


def test_in_memory_delete_is_idempotent() -> None:
    store = InMemoryKeyValueStore({"a": "1"})
    store.delete("a")
    store.delete("a")
    assert store.keys() == []
