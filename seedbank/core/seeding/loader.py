"""
Suite loader: named seed documents living in the suites directory.

Usage:
    loader = SuiteLoader()
    loader.load_test_suite("basic_facility_test")
    loader.load_multiple(["basic_facility_test", "complex_menus_test"])
"""
from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import yaml

from seedbank.core.config import get_config, seeding_active
from seedbank.core.errors import ErrorKind, ParsingError
from seedbank.core.inflection import singularize, underscore
from seedbank.core.registry.models import type_name_of
from seedbank.core.runtime import SeedRuntime, get_runtime

from .core import FACTORY, SeedParser
from .providers import CapabilityProvider
from .transaction import commit_scope

log = logging.getLogger("seedbank.loader")

SUITE_SUFFIX = ".yml"


class SuiteLoader:
    def __init__(self, runtime: Optional[SeedRuntime] = None, suites_dir: Optional[Union[str, Path]] = None):
        self._runtime = runtime
        self._suites_dir = Path(suites_dir) if suites_dir is not None else None

    @property
    def runtime(self) -> SeedRuntime:
        return self._runtime if self._runtime is not None else get_runtime()

    @property
    def suites_dir(self) -> Path:
        return self._suites_dir if self._suites_dir is not None else get_config().suites_dir

    def suite_path(self, suite_name: str) -> Path:
        return self.suites_dir / f"{suite_name}{SUITE_SUFFIX}"

    def _parser(self, delegate: Optional[CapabilityProvider]) -> SeedParser:
        return self.runtime.parser(delegate=delegate)

    # ------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------
    def load_test_suite(
        self,
        suite_name: str,
        *,
        read_only: bool = False,
        delegate: Optional[CapabilityProvider] = None,
        export_mappings: bool = False,
    ) -> List[Any]:
        path = self.suite_path(suite_name)
        try:
            if not self.suite_exists(suite_name):
                raise ParsingError(
                    f"Test suite '{suite_name}' not found.",
                    kind=ErrorKind.SUITE_NOT_FOUND,
                    source=str(path),
                    suggestions=[
                        f"Check the spelling of the suite name: {suite_name}",
                        f"Make sure the file exists at: {path}",
                        "Use list_available_suites() to see available suites",
                    ],
                )

            log.info("Loading test suite: %s", suite_name)
            started = time.monotonic()
            created = self._parser(delegate).parse_file(path, read_only=read_only)
            log.info("Loaded %s (%d objects in %.2fs)", suite_name, len(created), time.monotonic() - started)

            if export_mappings:
                self.export_id_mappings(suite_name, created)
            return created
        except ParsingError as e:
            log.error("Failed to load test suite '%s':\n%s", suite_name, e.report())
            raise
        except Exception as e:
            message = f"Unexpected error loading test suite '{suite_name}': {e}"
            log.error(message)
            raise ParsingError(
                message,
                kind=ErrorKind.LOADER_ERROR,
                source=str(path),
                suggestions=[
                    "Check that the YAML file is valid",
                    "Verify all dependencies are available",
                    "Contact support if this error persists",
                ],
            ) from e

    def load_multiple(self, suite_names: Sequence[str], **options: Any) -> Dict[str, List[Any]]:
        results: Dict[str, List[Any]] = {}
        total = 0
        for position, suite_name in enumerate(suite_names, start=1):
            log.info("Loading suite %s (%d of %d)", suite_name, position, len(suite_names))
            created = self.load_test_suite(suite_name, **options)
            results[suite_name] = created
            total += len(created)
        log.info("Loaded %d test suites with %d total objects", len(suite_names), total)
        return results

    def load_from_content(
        self,
        content: Union[str, bytes],
        *,
        delegate: Optional[CapabilityProvider] = None,
        source_id: str = "<inline>",
        read_only: bool = False,
    ) -> List[Any]:
        """
        Parse raw YAML inside one transaction: committed on success, reverted
        when parsing fails. ``is_seeding_active()`` is True for the duration.
        """
        parser = self._parser(delegate)
        with seeding_active():
            with commit_scope(parser.participants()):
                return parser.parse(content, source_id, read_only=read_only)

    # ------------------------------------------------------------
    # Discovery / validation
    # ------------------------------------------------------------
    def list_available_suites(self) -> List[str]:
        if not self.suites_dir.is_dir():
            return []
        return sorted(p.stem for p in self.suites_dir.glob(f"*{SUITE_SUFFIX}") if p.is_file())

    def suite_exists(self, suite_name: str) -> bool:
        if not suite_name or Path(suite_name).name != suite_name:
            return False
        return self.suite_path(suite_name).is_file()

    def validate_suite(self, suite_name: str) -> Dict[str, Any]:
        path = self.suite_path(suite_name)
        if not self.suite_exists(suite_name):
            return {"valid": False, "errors": [f"Suite file not found: {path}"]}
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return {"valid": False, "errors": [f"Validation error: {e}"]}
        return self.validate_content(text, str(path))

    def validate_content(self, content: str, source_id: str = "YAML content") -> Dict[str, Any]:
        """Structural checks only; nothing is created."""
        try:
            document = yaml.safe_load(content)
        except yaml.YAMLError as e:
            return {"valid": False, "errors": [f"YAML syntax error: {e}"]}

        errors: List[str] = []
        if not isinstance(document, Mapping):
            return {"valid": False, "errors": [f"{source_id}: YAML root must be a hash/dictionary"]}
        sections = [k for k in document if k != "metadata"]
        if not sections:
            errors.append(f"{source_id}: YAML must contain at least one data section")
        errors.extend(self._unknown_factories(document, sections))
        return {"valid": not errors, "errors": errors}

    def _unknown_factories(self, document: Mapping[str, Any], sections: List[Any]) -> List[str]:
        factories = self.runtime.factories
        if factories is None or not factories.names():
            return []
        out: List[str] = []
        for section in sections:
            models = document[section]
            if not isinstance(models, Mapping):
                continue
            for model_type, items in models.items():
                if isinstance(items, Mapping) and "bulk_create" in items:
                    bulk = items["bulk_create"]
                    items = (bulk if isinstance(bulk, Mapping) and bulk else items).get("template")
                for item in items if isinstance(items, list) else [items]:
                    if not isinstance(item, Mapping) or SeedParser.strategy_for(item) != FACTORY:
                        continue
                    name = item["factory"] if "factory" in item else singularize(underscore(str(model_type)))
                    if isinstance(name, str) and not factories.has(name) and "{{" not in name:
                        out.append(f"{section}.{model_type}: unknown factory '{name}'")
        return out

    # ------------------------------------------------------------
    # Scaffolding / export
    # ------------------------------------------------------------
    def create_suite_template(self, suite_name: str, models: Sequence[str] = ("accounts", "users")) -> Dict[str, Any]:
        template: Dict[str, Any] = {
            "metadata": {
                "context": "Test Data",
                "description": f"Test suite for {suite_name}",
            },
            "data": {},
        }
        for model in models:
            singular = singularize(model)
            template["data"][model] = [
                {
                    "factory": singular,
                    "attributes": {"name": f"Sample {singular.replace('_', ' ').capitalize()}"},
                    "ref": f"@sample_{singular}",
                }
            ]
        return template

    def export_id_mappings(self, suite_name: str, created: Sequence[Any]) -> Path:
        mappings: Dict[str, Any] = {}
        for index, obj in enumerate(created):
            object_id = getattr(obj, "id", None)
            if object_id is not None:
                mappings[f"{suite_name}_{underscore(type_name_of(obj))}_{index}"] = object_id

        path = self.suites_dir / f"{suite_name}_id_mappings.json"
        path.write_text(json.dumps(mappings, indent=2, default=str), encoding="utf-8")
        log.info("Exported ID mappings to: %s", path)
        return path
