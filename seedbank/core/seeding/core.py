"""
YAML seed orchestrator.

A document is a root mapping of sections (``data`` first, then the rest in
declared order, ``metadata`` excluded). Each section maps a model type to one
item, a list of items, or a bulk-create block:

    metadata:
      context: "Scheduling"
    data:
      accounts:
        - factory: account
          traits: [active]
          attributes: {name: "Facility 1"}
          ref: account.facility_1
      menu_items:
        bulk_create:
          count: 6
          template:
            method: create_menu_item
            arguments: {week: "{{index / 3 + 1}}", day: "{{index % 3 + 1}}"}

Strategies, by precedence: ``factory`` > ``method`` > ``custom_method`` >
the factory named after the singularized model type.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from seedbank.core.config import get_config
from seedbank.core.dates import Clock, DateResolver
from seedbank.core.errors import ErrorKind, ParsingError
from seedbank.core.expressions import TemplateExpressionError, render_template
from seedbank.core.inflection import singularize, underscore
from seedbank.core.observability.metrics import inc_object_created, inc_parse
from seedbank.core.registry import Registry

from .factories import FactoryRegistry
from .providers import CapabilityProvider, HandlerProvider, ProviderChain
from .references import ReferenceResolver
from .source_map import SourceMap
from .transaction import rollback_scope

log = logging.getLogger("seedbank.core")

Document = Union[str, bytes, Mapping[str, Any]]

LOCAL_REF = re.compile(r"^@(\w+)$")

FACTORY = "factory"
METHOD = "method"
CUSTOM_METHOD = "custom_method"

_SYNTAX_SUGGESTIONS = (
    "Check for missing colons (:) after keys",
    "Verify proper indentation (use spaces, not tabs)",
    "Make sure quotes are properly closed",
    "Check for missing dashes (-) before list items",
    "Use a YAML validator to check your syntax",
)

_CREATION_SUGGESTIONS = (
    "Check that all required attributes are provided",
    "Verify that referenced objects exist (e.g., @account_name)",
    "Make sure the factory name is correct",
    "Check for typos in attribute names",
)

_METHOD_SUGGESTIONS = (
    "Make sure the method exists in your configured seed helpers",
    "Check the spelling of the method name",
    "Verify the method is registered with the delegate passed to the parser",
)


@dataclass
class ParseSession:
    """State owned by exactly one ``parse`` call."""

    source_id: Optional[str]
    source_map: SourceMap
    yaml_context: str
    context: Dict[str, Any] = field(default_factory=dict)
    created: List[Any] = field(default_factory=list)
    providers: Optional[ProviderChain] = None
    section: Optional[str] = None
    model_type: Optional[str] = None
    index: Optional[int] = None

    def item_location(self) -> Tuple[Optional[int], Optional[int]]:
        if self.model_type is None:
            return None, None
        path: Tuple[Any, ...] = (self.section, self.model_type)
        if self.index is not None:
            path += (self.index,)
        loc = self.source_map.locate(*path)
        return loc if loc else (None, None)

    def fail(self, message: str, kind: ErrorKind, suggestions: Iterable[str] = ()) -> ParsingError:
        line, column = self.item_location()
        return ParsingError(
            message,
            kind=kind,
            source=self.source_id,
            line=line,
            column=column,
            suggestions=suggestions,
        )


class SeedParser:
    """
    Parses seed documents into created objects.

    Collaborators:
        registry   directory receiving dotted ``ref`` keys
        factories  named constructors for the factory strategy
        helpers    capability provider for ``method``/``custom_method``
                   (falls back to the configured helpers)
        delegate   caller-supplied provider, consulted before helpers
        store      object store used to persist ``after_create.set``
        scopes     extra transactional participants reverted in read-only mode
    """

    def __init__(
        self,
        registry: Optional[Registry] = None,
        factories: Optional[FactoryRegistry] = None,
        *,
        helpers: Optional[CapabilityProvider] = None,
        delegate: Optional[CapabilityProvider] = None,
        store: Any = None,
        clock: Optional[Clock] = None,
        default_context: Optional[str] = None,
        scopes: Sequence[Any] = (),
    ):
        self.registry = registry if registry is not None else Registry()
        self.store = store if store is not None else (factories.store if factories is not None else None)
        self.factories = factories if factories is not None else FactoryRegistry(store=self.store)
        self.helpers = helpers
        self.delegate = delegate
        self.default_context = default_context
        self.scopes = list(scopes)
        self.resolver = ReferenceResolver(self.registry, DateResolver(clock))

    # ------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------
    def parse_file(self, path: Union[str, Path], read_only: bool = False) -> List[Any]:
        p = Path(path)
        if not p.is_file():
            err = ParsingError(
                "The YAML file could not be found at the specified location.",
                kind=ErrorKind.FILE_NOT_FOUND,
                source=str(p),
                suggestions=[
                    f"Check that the file path is correct: {p}",
                    "Make sure the file exists in the expected directory",
                    "Verify you have permission to read the file",
                ],
            )
            inc_parse("error", read_only=read_only, kind=err.kind.value)
            raise err
        try:
            text = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            err = ParsingError(
                f"Could not read the YAML file: {e}",
                kind=ErrorKind.READ_ERROR,
                source=str(p),
                suggestions=[
                    "Check file permissions",
                    "Verify the file is not corrupted",
                    "Make sure the file is saved as UTF-8 encoding",
                ],
            )
            inc_parse("error", read_only=read_only, kind=err.kind.value)
            raise err from None
        return self.parse(text, str(p), read_only=read_only)

    def parse_content(self, text: Union[str, bytes], source_id: str = "<inline>", read_only: bool = False) -> List[Any]:
        return self.parse(text, source_id, read_only=read_only)

    def parse(self, document: Document, source_id: Optional[str] = None, read_only: bool = False) -> List[Any]:
        """
        Create every object described by ``document`` and return them in
        creation order.

        With ``read_only`` all side effects run as usual and are then reverted
        on every exit path; errors surface exactly as in normal mode.
        """
        try:
            if read_only:
                with rollback_scope(self.participants()):
                    created = self._run(document, source_id)
            else:
                created = self._run(document, source_id)
        except ParsingError as e:
            inc_parse("error", read_only=read_only, kind=e.kind.value)
            raise
        except Exception as e:
            err = self._unexpected(e, source_id)
            inc_parse("error", read_only=read_only, kind=err.kind.value)
            raise err from e
        inc_parse("ok", read_only=read_only)
        return created

    def participants(self) -> List[Any]:
        return [self.registry, self.store, *self.scopes]

    # ------------------------------------------------------------
    # Document level
    # ------------------------------------------------------------
    def _run(self, document: Document, source_id: Optional[str]) -> List[Any]:
        session = ParseSession(
            source_id=source_id,
            source_map=SourceMap(),
            yaml_context=self.default_context or self.registry.default_context,
        )
        session.providers = ProviderChain([self.delegate, self._helpers(), self._builtins(session)])
        try:
            content = self._load(document, session)
            self._validate_structure(content, session)
            log.info("Parsing YAML seed document: %s", Path(source_id).name if source_id else "<inline>")
            self._process(content, session)
        except ParsingError as e:
            raise e.with_location(source=source_id)
        except Exception as e:
            raise self._unexpected(e, source_id) from e
        log.info("Created %d objects from YAML", len(session.created))
        return session.created

    def _unexpected(self, e: Exception, source_id: Optional[str]) -> ParsingError:
        log.exception("Unexpected error while parsing %s", source_id or "<inline>")
        return ParsingError(
            f"An unexpected error occurred while processing the YAML file: {e}",
            kind=ErrorKind.UNEXPECTED,
            source=source_id,
            suggestions=[
                "Check the YAML file for syntax errors",
                "Verify all required sections are present",
                "Contact support if the error persists",
            ],
        )

    def _helpers(self) -> Optional[CapabilityProvider]:
        if self.helpers is not None:
            return self.helpers
        return get_config().helpers

    def _builtins(self, session: ParseSession) -> HandlerProvider:
        provider = HandlerProvider(name="seedbank")
        provider.register("registry_get", lambda key: self.registry.get(key))
        provider.register("local_reference", lambda name: self.resolver.local(str(name).lstrip("@"), session.context))
        return provider

    def _load(self, document: Document, session: ParseSession) -> Any:
        if isinstance(document, bytes):
            try:
                document = document.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ParsingError(
                    f"Could not read the YAML content: {e}",
                    kind=ErrorKind.READ_ERROR,
                    suggestions=["Make sure the content is saved as UTF-8 encoding"],
                ) from None
        if not isinstance(document, str):
            return document
        session.source_map = SourceMap.from_text(document)
        try:
            return yaml.safe_load(document)
        except yaml.MarkedYAMLError as e:
            mark = e.problem_mark or e.context_mark
            raise ParsingError(
                f"The YAML file contains syntax errors: {e.problem or e}",
                kind=ErrorKind.SYNTAX,
                line=mark.line + 1 if mark else None,
                column=mark.column + 1 if mark else None,
                suggestions=_SYNTAX_SUGGESTIONS,
            ) from None
        except yaml.YAMLError as e:
            raise ParsingError(
                f"The YAML file contains syntax errors: {e}",
                kind=ErrorKind.SYNTAX,
                suggestions=_SYNTAX_SUGGESTIONS,
            ) from None

    def _validate_structure(self, content: Any, session: ParseSession) -> None:
        if not isinstance(content, Mapping):
            raise ParsingError(
                "YAML file must contain a hash/dictionary at the root level.",
                kind=ErrorKind.INVALID_STRUCTURE,
                suggestions=[
                    "Make sure the YAML file starts with key-value pairs",
                    "Check that the indentation is correct throughout the file",
                    "Verify there are no syntax errors that would cause misinterpretation",
                ],
            )
        if not any(k != "metadata" for k in content):
            raise ParsingError(
                "YAML file must contain at least a 'data' section or other model sections.",
                kind=ErrorKind.NO_DATA_SECTIONS,
                suggestions=[
                    "Add a 'data:' section with your model definitions",
                    "Make sure section names are not indented (they should be at the root level)",
                    "Check the example YAML files for proper structure",
                ],
            )

    def _process(self, content: Mapping[str, Any], session: ParseSession) -> None:
        metadata = content.get("metadata")
        if isinstance(metadata, Mapping) and metadata.get("context"):
            session.yaml_context = str(metadata["context"])

        order = (["data"] if "data" in content else []) + [k for k in content if k not in ("metadata", "data")]
        for section in order:
            self._process_section(section, content[section], session)

    def _process_section(self, section: Any, section_data: Any, session: ParseSession) -> None:
        session.section = str(section)
        session.model_type = None
        session.index = None
        if section_data is None:
            return
        if not isinstance(section_data, Mapping):
            loc = session.source_map.locate(session.section)
            raise ParsingError(
                f"Section '{section}' must map model types to item definitions.",
                kind=ErrorKind.INVALID_STRUCTURE,
                line=loc[0] if loc else None,
                column=loc[1] if loc else None,
                suggestions=[
                    f"Nest model types under '{section}:', e.g. '{section}:\\n  accounts: ...'",
                    "Check that the indentation is correct throughout the file",
                ],
            )
        for model_type, items in section_data.items():
            self._process_model_items(str(model_type), items, session)

    def _process_model_items(self, model_type: str, items: Any, session: ParseSession) -> None:
        session.model_type = model_type
        session.index = None
        if isinstance(items, list):
            for index, item in enumerate(items):
                session.index = index
                self._create_item(model_type, item, session)
            session.index = None
        elif isinstance(items, Mapping) and "bulk_create" in items:
            self._bulk_create(model_type, items, session)
        else:
            self._create_item(model_type, items, session)

    # ------------------------------------------------------------
    # Bulk creation
    # ------------------------------------------------------------
    def _bulk_create(self, model_type: str, block: Mapping[str, Any], session: ParseSession) -> None:
        # nested form when bulk_create carries the parameters, flat form otherwise
        bulk = block["bulk_create"]
        params = bulk if isinstance(bulk, Mapping) and bulk else block

        template = params.get("template")
        if not isinstance(template, Mapping):
            raise session.fail(
                f"Bulk creation for '{model_type}' requires a template.",
                ErrorKind.MISSING_TEMPLATE,
                [
                    "Add a template section describing the item to repeat",
                    f"Example: {model_type}:\n  bulk_create:\n    count: 3\n    template:\n      factory: {singularize(underscore(model_type))}",
                ],
            )

        count = params.get("count")
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise session.fail(
                f"Bulk creation for '{model_type}' requires a positive integer count (got {count!r}).",
                ErrorKind.MISSING_COUNT,
                [
                    "Add a count field with the number of items to create",
                    "The count must be a whole number greater than zero",
                ],
            )

        log.debug("Bulk creating %d %s", count, model_type)
        for index in range(count):
            try:
                item = render_template(template, index)
            except TemplateExpressionError as e:
                raise session.fail(
                    f"Invalid template expression in bulk creation for '{model_type}' at index {index}: {e}",
                    ErrorKind.TEMPLATE_EXPRESSION_ERROR,
                    [
                        "Check the syntax of every {{ }} expression in the template",
                        "Only integers, index, + - * / % and parentheses are supported",
                        'Example: "{{index % 3 + 1}}"',
                    ],
                ) from None
            self._create_item(model_type, item, session)

    # ------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------
    def _create_item(self, model_type: str, config: Any, session: ParseSession) -> Any:
        try:
            if not isinstance(config, Mapping):
                raise session.fail(
                    f"Item configuration for '{model_type}' must be a hash/dictionary.",
                    ErrorKind.INVALID_CONFIG,
                    [
                        "Make sure each item is defined with key-value pairs",
                        "Check indentation - each item should be properly nested",
                        f"Example: {model_type}:\n  factory: {singularize(underscore(model_type))}\n  attributes:\n    name: 'Example'",
                    ],
                )

            strategy = self.strategy_for(config)
            handler = self._STRATEGIES.get(strategy)
            if handler is None:
                raise session.fail(
                    f"Unknown creation strategy '{strategy}' for model type '{model_type}'.",
                    ErrorKind.INVALID_STRATEGY,
                    [
                        "Use 'factory:' to specify a factory",
                        "Use 'method:' to call a seed helper method",
                        "Use 'custom_method:' for custom creation methods",
                    ],
                )
            obj = handler(self, model_type, config, session)
            inc_object_created(strategy)

            if config.get("ref") is not None:
                self._store_reference(config["ref"], obj, config.get("description"), session)
            if config.get("after_create") is not None:
                self._apply_after_create(obj, config["after_create"], session)

            session.created.append(obj)
            return obj
        except ParsingError as e:
            line, column = session.item_location()
            raise e.with_location(source=session.source_id, line=line, column=column)
        except Exception as e:
            raise session.fail(
                f"Failed to create {model_type} object: {e}",
                ErrorKind.CREATION_FAILED,
                _CREATION_SUGGESTIONS,
            ) from e

    @staticmethod
    def strategy_for(config: Mapping[str, Any]) -> str:
        # a strategy key selects its strategy whatever its value; values are checked on dispatch
        for key in (FACTORY, METHOD, CUSTOM_METHOD):
            if key in config:
                return key
        return FACTORY

    def _resolve_mapping(self, value: Any, field_name: str, model_type: str, session: ParseSession) -> Dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise session.fail(
                f"'{field_name}' for '{model_type}' must be a hash/dictionary.",
                ErrorKind.INVALID_CONFIG,
                [f"Write {field_name} as key-value pairs, e.g. '{field_name}: {{name: Example}}'"],
            )
        resolved = self.resolver.resolve(value, session.context)
        return {str(k): v for k, v in resolved.items()}

    def _create_with_factory(self, model_type: str, config: Mapping[str, Any], session: ParseSession) -> Any:
        name = config["factory"] if FACTORY in config else singularize(underscore(model_type))
        if not isinstance(name, str) or not name.strip():
            raise session.fail(
                f"Factory name for '{model_type}' must be a non-empty string (got {name!r}).",
                ErrorKind.INVALID_STRATEGY,
                ["Use 'factory: <name>' with the name of a registered factory"],
            )
        attributes = self._resolve_mapping(config.get("attributes"), "attributes", model_type, session)
        raw_traits = config.get("traits") or []
        if isinstance(raw_traits, str):
            raw_traits = [raw_traits]
        traits = [str(t) for t in self.resolver.resolve(list(raw_traits), session.context)]
        return self.factories.create(name, traits, attributes)

    def _create_with_method(self, model_type: str, config: Mapping[str, Any], session: ParseSession) -> Any:
        return self._invoke_named(model_type, config["method"], config, session)

    def _create_with_custom_method(self, model_type: str, config: Mapping[str, Any], session: ParseSession) -> Any:
        return self._invoke_named(model_type, config["custom_method"], config, session)

    def _invoke_named(self, model_type: str, name: Any, config: Mapping[str, Any], session: ParseSession) -> Any:
        if not isinstance(name, str) or not name.strip():
            raise session.fail(
                f"Method name for '{model_type}' must be a string (got {name!r}).",
                ErrorKind.INVALID_METHOD_NAME,
                ["Write the method name as plain text, e.g. 'custom_method: create_special_account'"],
            )
        provider = session.providers.find(name)
        if provider is None:
            available = ", ".join(session.providers.available())
            raise session.fail(
                f"Seed helper method '{name}' not found.",
                ErrorKind.METHOD_NOT_FOUND,
                _METHOD_SUGGESTIONS + ((f"Available methods: {available}",) if available else ()),
            )
        raw = config.get("arguments") if config.get("arguments") is not None else config.get("attributes")
        arguments = self._resolve_mapping(raw, "arguments", model_type, session)
        return provider.invoke(name, **arguments)

    _STRATEGIES: Dict[str, Callable[..., Any]] = {
        FACTORY: _create_with_factory,
        METHOD: _create_with_method,
        CUSTOM_METHOD: _create_with_custom_method,
    }

    # ------------------------------------------------------------
    # ref / after_create
    # ------------------------------------------------------------
    def _store_reference(self, ref: Any, obj: Any, description: Any, session: ParseSession) -> None:
        if not isinstance(ref, str) or not ref.strip():
            raise session.fail(
                f"'ref' must be a string (got {ref!r}).",
                ErrorKind.INVALID_CONFIG,
                ["Use 'ref: @name' for a local reference or 'ref: type.key' for a registry key"],
            )
        if ref.startswith("@"):
            m = LOCAL_REF.match(ref)
            if m is None:
                raise session.fail(
                    f"Invalid local reference name '{ref}'.",
                    ErrorKind.INVALID_CONFIG,
                    ["Local reference names may contain only letters, digits and underscores"],
                )
            session.context[m.group(1)] = obj
            log.debug("Stored local reference: %s -> %s#%s", ref, type(obj).__name__, getattr(obj, "id", None))
            return
        self.registry.register(
            ref,
            obj,
            description=str(description) if description is not None else None,
            context=session.yaml_context,
        )

    def _apply_after_create(self, obj: Any, steps: Any, session: ParseSession) -> None:
        if not isinstance(steps, Mapping):
            raise session.fail(
                "'after_create' must be a hash with 'call' and/or 'set'.",
                ErrorKind.INVALID_CONFIG,
                ["Example: after_create:\n  call: [activate]\n  set: {status: active}"],
            )
        for action, value in steps.items():
            if action == "call":
                for method_name in [value] if isinstance(value, str) else list(value or []):
                    if not isinstance(method_name, str) or method_name.startswith("_"):
                        raise ValueError(f"after_create call entries must be public method names, got {method_name!r}")
                    getattr(obj, method_name)()
            elif action == "set":
                if not isinstance(value, Mapping):
                    raise ValueError("after_create set must map attribute names to values")
                for attr, raw in value.items():
                    setattr(obj, str(attr), self.resolver.resolve(raw, session.context))
                self._persist(obj)
            else:
                log.warning("Ignoring unknown after_create action '%s'", action)

    def _persist(self, obj: Any) -> None:
        save = getattr(obj, "save", None)
        if callable(save):
            save()
        elif self.store is not None:
            self.store.save(obj)
