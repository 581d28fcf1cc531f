from datetime import date

import pytest

from seedbank.core.dates import DateResolver
from seedbank.core.errors import ErrorKind, ParsingError
from seedbank.core.inflection import singularize, underscore
from seedbank.core.seeding import ReferenceResolver

from conftest import FIXED_TODAY, Account, User


@pytest.fixture()
def resolver(registry, fixed_clock):
    return ReferenceResolver(registry, DateResolver(fixed_clock))


@pytest.mark.parametrize(
    "plural,singular",
    [
        ("accounts", "account"),
        ("menu_items", "menu_item"),
        ("categories", "category"),
        ("addresses", "address"),
        ("people", "person"),
        ("statuses", "status"),
        ("data", "data"),
        ("account", "account"),
    ],
)
def test_singularize(plural, singular):
    assert singularize(plural) == singular


def test_underscore():
    assert underscore("MenuItem") == "menu_item"
    assert underscore("HTTPRequestLog") == "http_request_log"
    assert underscore("order-lines") == "order_lines"


# ------------------------------------------------------------
# @name / @name.attribute
# ------------------------------------------------------------
def test_local_reference(resolver):
    acc = Account(name="Main")
    assert resolver.resolve("@main", {"main": acc}) is acc


def test_missing_local_reference_lists_known_names(resolver):
    with pytest.raises(ParsingError) as ei:
        resolver.resolve("@nope", {"main": 1, "other": 2})
    err = ei.value
    assert err.kind == ErrorKind.REFERENCE_NOT_FOUND
    assert err.message == "Reference '@nope' not found in the current context."
    assert err.suggestions[-1] == "Available references: @main, @other"


def test_missing_local_reference_with_empty_context(resolver):
    with pytest.raises(ParsingError) as ei:
        resolver.resolve("@nope", {})
    assert ei.value.suggestions[-1] == "No references are currently available."


def test_attribute_reference(resolver):
    acc = Account(name="Main")
    acc.id = 12
    ctx = {"main": acc, "cfg": {"tier": "gold"}}
    assert resolver.resolve("@main.id", ctx) == 12
    assert resolver.resolve("@main.name", ctx) == "Main"
    assert resolver.resolve("@cfg.tier", ctx) == "gold"


def test_attribute_reference_invokes_methods(resolver):
    class Wrapper:
        def label(self):
            return "computed"

    assert resolver.resolve("@w.label", {"w": Wrapper()}) == "computed"


@pytest.mark.parametrize("attr", ["missing", "_private"])
def test_attribute_not_found(resolver, attr):
    with pytest.raises(ParsingError) as ei:
        resolver.resolve(f"@main.{attr}", {"main": Account(name="x")})
    assert ei.value.kind == ErrorKind.ATTRIBUTE_NOT_FOUND
    assert "@main" in ei.value.message


def test_attribute_on_missing_local_is_reference_error(resolver):
    with pytest.raises(ParsingError) as ei:
        resolver.resolve("@ghost.id", {})
    assert ei.value.kind == ErrorKind.REFERENCE_NOT_FOUND


# ------------------------------------------------------------
# registry.<type>.<key>
# ------------------------------------------------------------
def test_registry_reference_tries_singular_then_bare_then_plural(resolver, registry, store):
    singular = store.add(Account(name="singular"))
    bare = store.add(Account(name="bare"))
    plural = store.add(User(name="plural"))
    registry.register("account.main", singular)
    registry.register("standalone", bare)
    registry.register("users.admin", plural)

    assert resolver.resolve("registry.accounts.main", {}) is singular
    assert resolver.resolve("registry.accounts.standalone", {}) is bare
    assert resolver.resolve("registry.users.admin", {}) is plural


def test_registry_reference_not_found(resolver, registry, store):
    registry.register("account.main", store.add(Account()))
    with pytest.raises(ParsingError) as ei:
        resolver.resolve("registry.accounts.other", {})
    err = ei.value
    assert err.kind == ErrorKind.REGISTRY_KEY_NOT_FOUND
    assert "Try using 'registry.account.other' instead" in err.suggestions
    assert "Some available keys: account.main" in err.suggestions


def test_registry_reference_to_deleted_object(resolver, registry, store):
    acc = store.add(Account())
    registry.register("account.gone", acc)
    store.delete(acc)
    with pytest.raises(ParsingError) as ei:
        resolver.resolve("registry.accounts.gone", {})
    assert ei.value.kind == ErrorKind.REGISTRY_KEY_NOT_FOUND
    assert not registry.exists("account.gone")


def test_registry_dates(resolver):
    assert resolver.resolve("registry.dates.today", {}) == FIXED_TODAY
    assert resolver.resolve("registry.dates.tomorrow", {}) == date(2025, 1, 7)


def test_registry_dates_unknown_key(resolver):
    with pytest.raises(ParsingError) as ei:
        resolver.resolve("registry.dates.someday", {})
    assert ei.value.kind == ErrorKind.INVALID_DATE_KEY


# ------------------------------------------------------------
# [[ expressions ]]
# ------------------------------------------------------------
def test_whole_expression_keeps_native_type(resolver):
    assert resolver.resolve("[[ 1 + 2 ]]", {}) == 3
    assert resolver.resolve("  [[ today() ]]  ", {}) == FIXED_TODAY


def test_mixed_text_is_interpolated(resolver):
    assert resolver.resolve("Week [[ 1 + 1 ]] of [[ 2 * 26 ]]", {}) == "Week 2 of 52"


def test_expression_can_use_references(resolver, registry, store):
    acc = store.add(Account(name="Main"))
    registry.register("account.main", acc)
    ctx = {"owner": acc}

    assert resolver.resolve("[[ ref('owner').name.upper() ]]", ctx) == "MAIN"
    assert resolver.resolve("[[ registry('account.main').id ]]", ctx) == acc.id
    assert resolver.resolve("[[ registry_date('next_week') ]]", ctx) == date(2025, 1, 13)


def test_expression_date_helpers(resolver):
    assert resolver.resolve("[[ days_from_now(3) ]]", {}) == date(2025, 1, 9)
    assert resolver.resolve("[[ next_occurring('monday') ]]", {}) == date(2025, 1, 13)
    assert resolver.resolve("[[ today().isoformat() ]]", {}) == "2025-01-06"


@pytest.mark.parametrize(
    "expr",
    [
        "[[ 1 / 0 ]]",
        "[[ undefined_name ]]",
        "[[ __import__('os') ]]",
        "[[ ref('missing_thing') if False else registry('nope') ]]",
        "[[ (1, ]]",
        "[[ 'a'.zfill(20000000) ]]",
        "[[ " + "-" * 100_000 + "1 ]]",
    ],
)
def test_expression_failures_are_reported(resolver, expr):
    with pytest.raises(ParsingError) as ei:
        resolver.resolve(expr, {})
    assert ei.value.kind == ErrorKind.EXPRESSION_EVALUATION_ERROR
    assert ei.value.message.startswith("Error evaluating expression '")


def test_reference_error_inside_expression_keeps_its_kind(resolver):
    with pytest.raises(ParsingError) as ei:
        resolver.resolve("[[ ref('missing') ]]", {})
    assert ei.value.kind == ErrorKind.REFERENCE_NOT_FOUND


# ------------------------------------------------------------
# Containers / passthrough
# ------------------------------------------------------------
def test_containers_resolved_recursively_keys_untouched(resolver):
    acc = Account(name="A")
    resolved = resolver.resolve(
        {"@owner": "@owner", "nested": {"items": ["@owner", "[[ 2 + 2 ]]", 5]}},
        {"owner": acc},
    )
    assert list(resolved) == ["@owner", "nested"]
    assert resolved["@owner"] is acc
    assert resolved["nested"]["items"] == [acc, 4, 5]


@pytest.mark.parametrize("value", ["plain text", "user@example.com", "@", "registry.accounts", 42, None, 1.5, True])
def test_passthrough(resolver, value):
    assert resolver.resolve(value, {}) == value
