import runpy
from pathlib import Path

import pytest

from seedbank.core.config import configure, get_config, is_seeding_active, reset_config, seeding_active
from seedbank.core.registry import MemoryRegistryBackend, SqliteRegistryBackend
from seedbank.core.runtime import build_runtime, get_runtime, reset_runtime, set_runtime
from seedbank.core.seeding import HandlerProvider, MemoryObjectStore

from conftest import Account


def test_config_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SEEDBANK_ENV", " DEV ")
    monkeypatch.setenv("SEEDBANK_REGISTRY_BACKEND", "sqlite")
    monkeypatch.setenv("SEEDBANK_REGISTRY_PATH", str(tmp_path / "r.db"))
    monkeypatch.setenv("SEEDBANK_DEFAULT_CONTEXT", "Fixtures")
    monkeypatch.setenv("SEEDBANK_DENIED_DATABASES", "a, b")
    reset_config()

    cfg = get_config()
    assert cfg.env == "dev"
    assert cfg.registry_backend == "sqlite"
    assert cfg.registry_path == tmp_path / "r.db"
    assert cfg.default_context == "Fixtures"
    assert cfg.denied_databases == ("a", "b")
    assert cfg.seeding_allowed is True


def test_config_defaults(monkeypatch):
    for name in ("SEEDBANK_ENV", "SEEDBANK_SUITES_DIR", "SEEDBANK_DEFAULT_CONTEXT", "SEEDBANK_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    reset_config()

    cfg = get_config()
    assert cfg.env == "dev"
    assert cfg.suites_dir == Path("test_suites")
    assert cfg.registry_backend == "memory"
    assert cfg.default_context == "Reference Data"
    assert cfg.denied_databases == ("production", "staging")
    assert cfg.log_level == "INFO"


@pytest.mark.parametrize(
    "env,database,allowed",
    [
        ("dev", None, True),
        ("test", "seedbank_test", True),
        ("prod", None, False),
        ("test", "production", False),
        ("dev", "staging", False),
    ],
)
def test_seeding_allowed(env, database, allowed):
    assert configure(env=env, database_name=database).seeding_allowed is allowed


def test_configure_coerces_paths():
    cfg = configure(suites_dir="some/where")
    assert cfg.suites_dir == Path("some/where")
    assert get_config() is cfg


def test_seeding_active_restores_previous_value():
    assert is_seeding_active() is False
    with seeding_active():
        assert is_seeding_active() is True
        with seeding_active():
            assert is_seeding_active() is True
        assert is_seeding_active() is True
    assert is_seeding_active() is False


def test_seeding_active_reset_on_error():
    with pytest.raises(RuntimeError):
        with seeding_active():
            raise RuntimeError("boom")
    assert is_seeding_active() is False


# ------------------------------------------------------------
# Runtime wiring
# ------------------------------------------------------------
def test_build_runtime_memory_defaults():
    rt = build_runtime()
    assert isinstance(rt.registry.backend, MemoryRegistryBackend)
    assert rt.registry.backend.locator is rt.store
    assert rt.factories.store is rt.store
    assert rt.helpers is None


def test_build_runtime_sqlite(tmp_path):
    configure(registry_backend="sqlite", registry_path=tmp_path / "seed.db", default_context="Fixtures")
    rt = build_runtime()
    try:
        assert isinstance(rt.registry.backend, SqliteRegistryBackend)
        acc = rt.store.add(Account(name="a"))
        rt.registry.register("account.a", acc)
        assert rt.registry.entry("account.a").context == "Fixtures"
        assert (tmp_path / "seed.db").exists()
    finally:
        rt.registry.backend.close()


def test_build_runtime_unknown_backend():
    configure(registry_backend="redis")
    with pytest.raises(ValueError, match="Unknown registry backend: redis"):
        build_runtime()


def test_build_runtime_takes_configured_helpers():
    helpers = HandlerProvider(name="host")
    configure(helpers=helpers)
    assert build_runtime().helpers is helpers


def test_process_runtime_is_shared():
    rt = get_runtime()
    assert get_runtime() is rt
    other = build_runtime()
    set_runtime(other)
    assert get_runtime() is other
    reset_runtime()
    assert get_runtime() is not other


def test_runtime_parser_uses_runtime_collaborators(runtime):
    runtime.factories.define("account_alias", Account)
    (acc,) = runtime.parser().parse("data:\n  things:\n    - factory: account_alias\n      ref: thing.one\n")
    assert runtime.registry.get("thing.one") is acc
    assert runtime.store.find("Account", acc.id) is acc


def test_provision_tool(tmp_path, monkeypatch):
    target = tmp_path / "nested" / "registry.db"
    monkeypatch.setattr("sys.argv", ["provision_registry.py", str(target)])
    runpy.run_path(str(Path(__file__).resolve().parents[1] / "tools" / "provision_registry.py"), run_name="__main__")

    backend = SqliteRegistryBackend(target, locator=MemoryObjectStore())
    try:
        assert backend.count() == 0
    finally:
        backend.close()
