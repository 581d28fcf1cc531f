from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from seedbank.api.deps import get_seed_runtime
from seedbank.api.main import app
from seedbank.core.config import reset_config
from seedbank.core.observability.metrics import reset_metrics
from seedbank.core.registry import MemoryRegistryBackend, Registry
from seedbank.core.runtime import SeedRuntime, reset_runtime, set_runtime
from seedbank.core.seeding import FactoryRegistry, HandlerProvider, MemoryObjectStore, SeedParser

# Monday
FIXED_TODAY = date(2025, 1, 6)


# ------------------------------------------------------------
# Host model stand-ins
# ------------------------------------------------------------
class Record:
    def __init__(self, **attrs):
        self.id = None
        for k, v in attrs.items():
            setattr(self, k, v)


class Account(Record):
    def activate(self):
        self.active = True


class User(Record):
    pass


class MenuItem(Record):
    pass


@pytest.fixture(autouse=True)
def _isolated_seedbank(monkeypatch, tmp_path: Path):
    # Make runtime behave deterministically in tests
    suites = tmp_path / "suites"
    suites.mkdir()
    monkeypatch.setenv("SEEDBANK_ENV", "test")
    monkeypatch.setenv("SEEDBANK_SUITES_DIR", str(suites))
    monkeypatch.delenv("SEEDBANK_DATABASE_NAME", raising=False)
    monkeypatch.delenv("SEEDBANK_REGISTRY_BACKEND", raising=False)
    reset_config()
    reset_runtime()
    reset_metrics()
    yield
    app.dependency_overrides.clear()
    reset_config()
    reset_runtime()


@pytest.fixture()
def suites_dir(tmp_path: Path) -> Path:
    return tmp_path / "suites"


@pytest.fixture()
def fixed_clock():
    return lambda: FIXED_TODAY


@pytest.fixture()
def store():
    return MemoryObjectStore()


@pytest.fixture()
def registry(store):
    return Registry(MemoryRegistryBackend(locator=store))


@pytest.fixture()
def factories(store):
    f = FactoryRegistry(store=store)
    f.define(
        "account",
        Account,
        defaults={"name": "Account", "active": False},
        traits={"active": {"active": True}, "premium": {"tier": "premium"}},
    )
    f.define("user", User, defaults={"email": "user@example.com"})
    f.define("menu_item", MenuItem)
    return f


@pytest.fixture()
def helpers(store):
    h = HandlerProvider()

    @h.handler
    def create_menu_item(week, day, account=None, name=None):
        return store.add(MenuItem(week=week, day=day, account=account, name=name))

    @h.handler
    def create_special_account(name, tier="gold"):
        return store.add(Account(name=name, tier=tier, active=True))

    return h


@pytest.fixture()
def parser(registry, factories, helpers, store, fixed_clock):
    return SeedParser(registry, factories, helpers=helpers, store=store, clock=fixed_clock)


@pytest.fixture()
def runtime(store, registry, factories, helpers, fixed_clock):
    rt = SeedRuntime(store=store, registry=registry, factories=factories, helpers=helpers, clock=fixed_clock)
    set_runtime(rt)
    return rt


@pytest.fixture()
def client(runtime):
    app.dependency_overrides[get_seed_runtime] = lambda: runtime
    return TestClient(app)
