from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple


class ErrorKind(str, Enum):
    FILE_NOT_FOUND = "file_not_found"
    SYNTAX = "syntax"
    READ_ERROR = "read_error"
    INVALID_STRUCTURE = "invalid_structure"
    NO_DATA_SECTIONS = "no_data_sections"
    INVALID_CONFIG = "invalid_config"
    INVALID_STRATEGY = "invalid_strategy"
    CREATION_FAILED = "creation_failed"
    METHOD_NOT_FOUND = "method_not_found"
    INVALID_METHOD_NAME = "invalid_method_name"
    MISSING_TEMPLATE = "missing_template"
    MISSING_COUNT = "missing_count"
    TEMPLATE_EXPRESSION_ERROR = "template_expression_error"
    EXPRESSION_EVALUATION_ERROR = "expression_evaluation_error"
    UNEXPECTED = "unexpected"

    # reference resolution
    REFERENCE_NOT_FOUND = "reference_not_found"
    ATTRIBUTE_NOT_FOUND = "attribute_not_found"
    REGISTRY_KEY_NOT_FOUND = "registry_key_not_found"
    INVALID_DATE_KEY = "invalid_date_key"

    # directory / suite loader
    KEY_NOT_FOUND = "key_not_found"
    SUITE_NOT_FOUND = "suite_not_found"
    LOADER_ERROR = "loader_error"


@dataclass(frozen=True)
class Diagnostic:
    kind: ErrorKind
    message: str
    source: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    suggestions: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.kind.value,
            "message": self.message,
            "source": self.source,
            "line": self.line,
            "column": self.column,
            "suggestions": list(self.suggestions),
        }


class ParsingError(Exception):
    """Document-level failure carrying a single immutable ``Diagnostic``."""

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.UNEXPECTED,
        source: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        suggestions: Iterable[str] = (),
    ):
        self._diagnostic = Diagnostic(
            kind=ErrorKind(kind),
            message=message,
            source=source,
            line=line,
            column=column,
            suggestions=tuple(suggestions),
        )
        super().__init__(message)

    @classmethod
    def from_diagnostic(cls, diagnostic: Diagnostic) -> "ParsingError":
        err = cls.__new__(cls)
        err._diagnostic = diagnostic
        Exception.__init__(err, diagnostic.message)
        return err

    @property
    def diagnostic(self) -> Diagnostic:
        return self._diagnostic

    @property
    def kind(self) -> ErrorKind:
        return self._diagnostic.kind

    @property
    def message(self) -> str:
        return self._diagnostic.message

    @property
    def source(self) -> Optional[str]:
        return self._diagnostic.source

    @property
    def line(self) -> Optional[int]:
        return self._diagnostic.line

    @property
    def column(self) -> Optional[int]:
        return self._diagnostic.column

    @property
    def suggestions(self) -> Tuple[str, ...]:
        return self._diagnostic.suggestions

    def with_location(
        self,
        *,
        source: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> "ParsingError":
        """Copy of this error with source/line/column filled in where they are still unknown."""
        d = self._diagnostic
        has_line = d.line is not None
        updated = replace(
            d,
            source=d.source if d.source is not None else source,
            line=d.line if has_line else line,
            column=d.column if has_line else column,
        )
        if updated == d:
            return self
        return ParsingError.from_diagnostic(updated)

    def to_dict(self) -> Dict[str, Any]:
        out = self._diagnostic.to_dict()
        out["report"] = self.report()
        return out

    def report(self) -> str:
        return render_report(self._diagnostic)


def render_report(d: Diagnostic) -> str:
    lines: List[str] = ["YAML Seed File Error", ""]
    if d.source:
        lines.append(f"File: {Path(d.source).name}")
    if d.line is not None:
        location = f"Location: Line {d.line}"
        if d.column is not None:
            location += f", Column {d.column}"
        lines.append(location)
    lines.append(f"Problem: {d.message}")
    if d.suggestions:
        lines.append("")
        lines.append("How to fix this:")
        for i, suggestion in enumerate(d.suggestions, start=1):
            lines.append(f"   {i}. {suggestion}")
    return "\n".join(lines) + "\n"


# ------------------------------------------------------------
# Directory (registry) failures: programmer errors, no remediation text
# ------------------------------------------------------------
class RegistryError(Exception):
    pass


class RegistryPreconditionError(RegistryError, ValueError):
    pass


class RegistryKeyNotFound(RegistryError, KeyError):
    kind = ErrorKind.KEY_NOT_FOUND

    def __init__(self, key: str, available_keys: Sequence[str] = (), message: Optional[str] = None):
        self.key = key
        self.available_keys = list(available_keys)
        if message is None:
            message = f"Registry key '{key}' not found. Available keys: {', '.join(self.available_keys)}"
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class OrphanedEntryError(RegistryKeyNotFound):
    def __init__(self, key: str, available_keys: Sequence[str] = ()):
        super().__init__(
            key,
            available_keys,
            message=f"Registry key '{key}' references a deleted object. Entry removed.",
        )
