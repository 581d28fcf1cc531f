import json

import pytest

from seedbank.core.config import is_seeding_active
from seedbank.core.errors import ErrorKind, ParsingError
from seedbank.core.seeding import HandlerProvider
from seedbank.core.seeding.loader import SuiteLoader

BASIC = """
metadata:
  context: "Basic"
data:
  accounts:
    - factory: account
      attributes: {name: "Facility 1"}
      ref: account.facility_1
  users:
    - factory: user
      attributes: {account: registry.accounts.facility_1}
"""


@pytest.fixture()
def loader(runtime):
    return SuiteLoader()


@pytest.fixture()
def basic_suite(suites_dir):
    path = suites_dir / "basic_facility_test.yml"
    path.write_text(BASIC, encoding="utf-8")
    return path


def test_defaults_follow_config_and_runtime(loader, runtime, suites_dir):
    assert loader.suites_dir == suites_dir
    assert loader.runtime is runtime
    assert loader.suite_path("x") == suites_dir / "x.yml"


def test_list_and_exists(loader, suites_dir, basic_suite):
    (suites_dir / "b_suite.yml").write_text("data: {}\n", encoding="utf-8")
    (suites_dir / "notes.txt").write_text("", encoding="utf-8")

    assert loader.list_available_suites() == ["b_suite", "basic_facility_test"]
    assert loader.suite_exists("basic_facility_test")
    assert not loader.suite_exists("missing")
    assert not loader.suite_exists("../basic_facility_test")
    assert not loader.suite_exists("")


def test_list_when_directory_missing(runtime, tmp_path):
    assert SuiteLoader(suites_dir=tmp_path / "nowhere").list_available_suites() == []


def test_load_test_suite(loader, runtime, basic_suite):
    created = loader.load_test_suite("basic_facility_test")
    account, user = created
    assert user.account is account
    assert runtime.registry.entry("account.facility_1").context == "Basic"


def test_load_missing_suite(loader, suites_dir):
    with pytest.raises(ParsingError) as ei:
        loader.load_test_suite("nope")
    err = ei.value
    assert err.kind == ErrorKind.SUITE_NOT_FOUND
    assert err.message == "Test suite 'nope' not found."
    assert f"Make sure the file exists at: {suites_dir / 'nope.yml'}" in err.suggestions


def test_load_suite_read_only(loader, runtime, basic_suite):
    created = loader.load_test_suite("basic_facility_test", read_only=True)
    assert len(created) == 2
    assert runtime.store.count() == 0
    assert runtime.registry.count() == 0


def test_unexpected_loader_failure_is_wrapped(loader, basic_suite, monkeypatch):
    def broken(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(loader, "export_id_mappings", broken)
    with pytest.raises(ParsingError) as ei:
        loader.load_test_suite("basic_facility_test", export_mappings=True)
    assert ei.value.kind == ErrorKind.LOADER_ERROR
    assert "disk full" in ei.value.message


def test_load_multiple(loader, suites_dir, basic_suite):
    (suites_dir / "users_only.yml").write_text("data:\n  users:\n    - factory: user\n", encoding="utf-8")
    results = loader.load_multiple(["basic_facility_test", "users_only"])
    assert list(results) == ["basic_facility_test", "users_only"]
    assert [len(v) for v in results.values()] == [2, 1]


def test_load_multiple_stops_at_first_failure(loader, basic_suite):
    with pytest.raises(ParsingError):
        loader.load_multiple(["missing", "basic_facility_test"])
    assert loader.runtime.store.count() == 0


def test_export_id_mappings(loader, suites_dir, basic_suite):
    created = loader.load_test_suite("basic_facility_test", export_mappings=True)
    path = suites_dir / "basic_facility_test_id_mappings.json"
    mappings = json.loads(path.read_text(encoding="utf-8"))
    assert mappings == {
        "basic_facility_test_account_0": created[0].id,
        "basic_facility_test_user_1": created[1].id,
    }


# ------------------------------------------------------------
# Raw content
# ------------------------------------------------------------
def test_load_from_content_flags_seeding_active(loader, runtime):
    seen = []

    def probe():
        seen.append(is_seeding_active())
        return runtime.store.add(type("Probe", (), {})())

    assert is_seeding_active() is False
    loader.load_from_content("data:\n  probes:\n    - method: probe\n", delegate=HandlerProvider.from_functions(probe))
    assert seen == [True]
    assert is_seeding_active() is False


def test_load_from_content_reverts_on_failure(loader, runtime):
    with pytest.raises(ParsingError) as ei:
        loader.load_from_content(
            "data:\n  accounts:\n    - factory: account\n      ref: account.a\n    - factory: spaceship\n",
            source_id="request.yml",
        )
    assert ei.value.source == "request.yml"
    assert runtime.store.count() == 0
    assert runtime.registry.count() == 0
    assert is_seeding_active() is False


def test_load_from_content_commits(loader, runtime):
    created = loader.load_from_content("data:\n  accounts:\n    - factory: account\n      ref: account.a\n")
    assert len(created) == 1
    assert runtime.registry.get("account.a") is created[0]


# ------------------------------------------------------------
# Validation / scaffolding
# ------------------------------------------------------------
def test_validate_content(loader):
    assert loader.validate_content(BASIC) == {"valid": True, "errors": []}


@pytest.mark.parametrize(
    "content,fragment",
    [
        ("data: [unclosed\n", "YAML syntax error"),
        ("- a\n", "YAML root must be a hash/dictionary"),
        ("metadata: {context: x}\n", "at least one data section"),
        ("data:\n  accounts:\n    - factory: spaceship\n", "data.accounts: unknown factory 'spaceship'"),
        ("data:\n  widgets:\n    - attributes: {}\n", "data.widgets: unknown factory 'widget'"),
        (
            "data:\n  accounts:\n    bulk_create:\n      count: 2\n      template: {factory: gadget}\n",
            "unknown factory 'gadget'",
        ),
        (
            "data:\n  accounts:\n    bulk_create: ~\n    count: 2\n    template: {factory: gizmo}\n",
            "unknown factory 'gizmo'",
        ),
    ],
)
def test_validate_content_errors(loader, content, fragment):
    result = loader.validate_content(content)
    assert result["valid"] is False
    assert any(fragment in e for e in result["errors"])


def test_validate_content_ignores_helper_methods(loader):
    result = loader.validate_content("data:\n  widgets:\n    - method: create_widget\n")
    assert result["valid"] is True


def test_validate_suite(loader, basic_suite):
    assert loader.validate_suite("basic_facility_test")["valid"] is True
    missing = loader.validate_suite("missing")
    assert missing["valid"] is False
    assert missing["errors"][0].startswith("Suite file not found:")


def test_create_suite_template(loader):
    template = loader.create_suite_template("menus", models=["menu_items"])
    assert template["metadata"] == {"context": "Test Data", "description": "Test suite for menus"}
    assert template["data"]["menu_items"] == [
        {"factory": "menu_item", "attributes": {"name": "Sample Menu item"}, "ref": "@sample_menu_item"}
    ]
