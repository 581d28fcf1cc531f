import pytest

from seedbank.core.errors import OrphanedEntryError, RegistryKeyNotFound, RegistryPreconditionError
from seedbank.core.observability.metrics import snapshot_named
from seedbank.core.registry import BACKENDS, MemoryRegistryBackend, Registry, SqliteRegistryBackend
from seedbank.core.registry.backends.sqlite import TABLE_NAME
from seedbank.core.seeding import MemoryObjectStore

from conftest import Account, User


@pytest.fixture(params=["memory", "sqlite"])
def backend_store(request, tmp_path):
    store = MemoryObjectStore()
    if request.param == "memory":
        backend = MemoryRegistryBackend(locator=store)
    else:
        backend = SqliteRegistryBackend(tmp_path / "registry.db", locator=store)
    yield Registry(backend), store
    if request.param == "sqlite":
        backend.close()


def _saved(store, cls, **attrs):
    return store.add(cls(**attrs))


def test_backends_registered():
    assert BACKENDS["memory"] is MemoryRegistryBackend
    assert BACKENDS["sqlite"] is SqliteRegistryBackend


# ------------------------------------------------------------
# Core contract (both backends)
# ------------------------------------------------------------
def test_register_get_exists(backend_store):
    registry, store = backend_store
    acc = _saved(store, Account, name="Facility 1")

    assert registry.register("account.facility_1", acc, "main facility") is acc
    assert registry.exists("account.facility_1")
    assert registry.get("account.facility_1") is acc
    assert registry.count() == 1
    assert registry.all_keys() == ["account.facility_1"]

    entry = registry.entry("account.facility_1")
    assert entry.object_type == "Account"
    assert entry.object_id == acc.id
    assert entry.description == "main facility"
    assert entry.context == "Reference Data"


def test_reregistering_overwrites(backend_store):
    registry, store = backend_store
    first = _saved(store, Account, name="first")
    second = _saved(store, Account, name="second")

    registry.register("account.main", first)
    registry.register("account.main", second, context="Other")

    assert registry.count() == 1
    assert registry.get("account.main") is second
    assert registry.entry("account.main").context == "Other"


def test_get_missing_lists_known_keys(backend_store):
    registry, store = backend_store
    registry.register("user.admin", _saved(store, User, name="admin"))

    with pytest.raises(RegistryKeyNotFound) as ei:
        registry.get("user.nobody")
    assert "user.admin" in str(ei.value)
    assert ei.value.available_keys == ["user.admin"]
    # still a KeyError for callers that expect one
    assert isinstance(ei.value, KeyError)


@pytest.mark.parametrize("bad_key", [None, 42, "", "   "])
def test_key_must_be_non_empty_text(backend_store, bad_key):
    registry, store = backend_store
    with pytest.raises(RegistryPreconditionError):
        registry.register(bad_key, _saved(store, Account))


def test_object_needs_durable_identity(backend_store):
    registry, _ = backend_store
    with pytest.raises(RegistryPreconditionError):
        registry.register("account.unsaved", Account(name="never saved"))
    with pytest.raises(RegistryPreconditionError):
        registry.register("account.none", None)
    assert registry.count() == 0


def test_exists_is_false_for_non_text(backend_store):
    registry, _ = backend_store
    assert registry.exists(None) is False
    assert registry.exists(3) is False


def test_remove_and_clear(backend_store):
    registry, store = backend_store
    registry.register("a.one", _saved(store, Account))
    registry.register("a.two", _saved(store, Account))

    assert registry.remove("a.one") is True
    assert registry.remove("a.one") is False
    assert registry.all_keys() == ["a.two"]

    registry.clear()
    assert registry.count() == 0


def test_clean_orphaned_removes_only_unresolvable(backend_store):
    registry, store = backend_store
    keep = _saved(store, Account, name="keep")
    gone = _saved(store, Account, name="gone")
    also_gone = _saved(store, User, name="also gone")
    registry.register("account.keep", keep)
    registry.register("account.gone", gone)
    registry.register("user.gone", also_gone)

    store.delete(gone)
    store.delete(also_gone)

    assert registry.clean_orphaned() == 2
    assert registry.all_keys() == ["account.keep"]
    assert registry.clean_orphaned() == 0


def test_get_orphan_removes_entry(backend_store):
    registry, store = backend_store
    acc = _saved(store, Account)
    registry.register("account.temp", acc)
    store.delete(acc)

    with pytest.raises(OrphanedEntryError):
        registry.get("account.temp")
    assert not registry.exists("account.temp")


def test_rollback_discards_writes(backend_store):
    registry, store = backend_store
    registry.register("account.before", _saved(store, Account))

    registry.begin()
    registry.register("account.during", _saved(store, Account))
    registry.remove("account.before")
    registry.rollback()

    assert registry.all_keys() == ["account.before"]


def test_nested_commit_keeps_writes(backend_store):
    registry, store = backend_store
    registry.begin()
    registry.begin()
    registry.register("account.inner", _saved(store, Account))
    registry.commit()
    registry.commit()
    assert registry.exists("account.inner")


# ------------------------------------------------------------
# Browsing helpers
# ------------------------------------------------------------
def test_stats_search_preview(backend_store):
    registry, store = backend_store
    acc = _saved(store, Account, name="Facility 1")
    user = _saved(store, User)
    registry.register("account.facility_1", acc, context="Facilities")
    registry.register("user.admin", user)

    stats = registry.stats()
    assert stats["total_entries"] == 2
    assert dict(stats["model_counts"]) == {"Account": 1, "User": 1}
    assert dict(stats["context_counts"]) == {"Facilities": 1, "Reference Data": 1}
    assert len(stats["recent_entries"]) == 2

    assert [e.key for e in registry.search("FACILITY")] == ["account.facility_1"]
    assert [e.key for e in registry.entries_for_type("User")] == ["user.admin"]

    assert registry.preview(registry.entry("account.facility_1")) == "Facility 1"
    assert registry.preview(registry.entry("user.admin")) == f"User#{user.id}"
    store.delete(user)
    assert registry.preview(registry.entry("user.admin")) == "Orphaned"
    assert registry.object_exists(registry.entry("user.admin")) is False


def test_registry_metrics_counted(backend_store):
    registry, store = backend_store
    registry.register("account.m", _saved(store, Account))
    assert snapshot_named().get("registry_register") == 1


# ------------------------------------------------------------
# Backend specifics
# ------------------------------------------------------------
def test_memory_backend_without_locator_tracks_persisted_flag():
    registry = Registry(MemoryRegistryBackend())
    acc = Account(name="x")
    acc.id = 7
    registry.register("account.x", acc)
    assert registry.get("account.x") is acc

    acc.persisted = False
    assert registry.clean_orphaned() == 1


def test_sqlite_table_survives_reconnect(tmp_path):
    store = MemoryObjectStore()
    path = tmp_path / "registry.db"
    acc = store.add(Account(name="durable"))

    first = SqliteRegistryBackend(path, locator=store)
    Registry(first).register("account.durable", acc, "kept")
    first.close()

    second = SqliteRegistryBackend(path, locator=store)
    try:
        registry = Registry(second)
        assert registry.get("account.durable") is acc
        assert registry.entry("account.durable").description == "kept"
        rows = second.conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()[0]
        assert rows == 1
    finally:
        second.close()


def test_sqlite_backend_requires_locator(tmp_path):
    with pytest.raises(ValueError):
        SqliteRegistryBackend(tmp_path / "r.db", locator=None)
