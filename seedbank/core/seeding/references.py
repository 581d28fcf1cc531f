"""
Reference resolution for item attributes.

String values are classified by whole-string pattern, in priority order:

    @name                   local reference created earlier in the same parse
    @name.attribute         attribute of a local reference
    registry.<type>.<key>   directory lookup (registry.dates.<key> for dates)
    [[ expr ]]              sandboxed expression, value returned as-is
    text [[ expr ]] text    interpolation of each expression's string form

Anything else passes through unchanged. Mappings are resolved per value
(keys untouched) and sequences per element.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

from seedbank.core.dates import DateResolver
from seedbank.core.errors import ErrorKind, ParsingError, RegistryKeyNotFound
from seedbank.core.expressions import ExpressionError, SafeEvaluator, default_functions
from seedbank.core.inflection import singularize
from seedbank.core.registry import Registry

log = logging.getLogger("seedbank.core")

LOCAL_REFERENCE = re.compile(r"^@(\w+)$")
ATTRIBUTE_REFERENCE = re.compile(r"^@(\w+)\.(\w+)$")
REGISTRY_REFERENCE = re.compile(r"^registry\.(\w+)\.(\w+)$")
EXPRESSION = re.compile(r"\[\[(.+?)\]\]", re.DOTALL)

_EXPRESSION_SUGGESTIONS = (
    "Check the syntax of the expression inside [[ ]]",
    "Only arithmetic, comparisons, literals and the built-in date/string helpers are available",
    "Use ref('name') for local references and registry('key') for registry objects",
    "Consider using simpler expressions or pre-defined references",
)


class ReferenceResolver:
    def __init__(
        self,
        registry: Registry,
        dates: Optional[DateResolver] = None,
        *,
        functions: Optional[Mapping[str, Any]] = None,
    ):
        self.registry = registry
        self.dates = dates or DateResolver()
        self._functions: Dict[str, Any] = dict(functions) if functions is not None else default_functions(self.dates.clock)

    def resolve(self, value: Any, context: MutableMapping[str, Any]) -> Any:
        if isinstance(value, str):
            return self._resolve_string(value, context)
        if isinstance(value, Mapping):
            return {k: self.resolve(v, context) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.resolve(v, context) for v in value]
        return value

    def _resolve_string(self, value: str, context: MutableMapping[str, Any]) -> Any:
        m = LOCAL_REFERENCE.match(value)
        if m:
            return self.local(m.group(1), context)
        m = ATTRIBUTE_REFERENCE.match(value)
        if m:
            return self.attribute(m.group(1), m.group(2), context)
        m = REGISTRY_REFERENCE.match(value)
        if m:
            return self.registry_reference(m.group(1), m.group(2))
        if "[[" in value and "]]" in value:
            return self._resolve_expressions(value, context)
        return value

    # ------------------------------------------------------------
    # @name / @name.attribute
    # ------------------------------------------------------------
    def local(self, name: str, context: Mapping[str, Any]) -> Any:
        if name not in context:
            known = ", ".join(f"@{k}" for k in context)
            raise ParsingError(
                f"Reference '@{name}' not found in the current context.",
                kind=ErrorKind.REFERENCE_NOT_FOUND,
                suggestions=[
                    f"Check that you've defined the reference with 'ref: @{name}' in an earlier item",
                    "Make sure the spelling matches exactly (references are case-sensitive)",
                    "Verify the item with this reference is created before it's used",
                    f"Available references: {known}" if known else "No references are currently available.",
                ],
            )
        return context[name]

    def attribute(self, name: str, attribute: str, context: Mapping[str, Any]) -> Any:
        obj = self.local(name, context)
        if isinstance(obj, Mapping) and attribute in obj:
            return obj[attribute]
        if not attribute.startswith("_") and hasattr(obj, attribute):
            value = getattr(obj, attribute)
            return value() if callable(value) else value

        readable: List[str] = sorted(obj) if isinstance(obj, Mapping) else [a for a in dir(obj) if not a.startswith("_")]
        raise ParsingError(
            f"Attribute '{attribute}' not found on object '@{name}'.",
            kind=ErrorKind.ATTRIBUTE_NOT_FOUND,
            suggestions=[
                "Check the spelling of the attribute name",
                "Verify the object has this attribute",
                "Common attributes include: id, name, created_at",
                f"Available attributes on this object include: {', '.join(str(a) for a in readable[:10])}",
            ],
        )

    # ------------------------------------------------------------
    # registry.<type>.<key>
    # ------------------------------------------------------------
    def registry_reference(self, registry_type: str, key: str) -> Any:
        if registry_type == "dates":
            return self.dates.resolve(key)

        singular = singularize(registry_type)
        candidates = [f"{singular}.{key}", key]
        if singular != registry_type:
            candidates.append(f"{registry_type}.{key}")

        for candidate in candidates:
            if self.registry.exists(candidate):
                try:
                    return self.registry.get(candidate)
                except RegistryKeyNotFound as e:
                    raise ParsingError(
                        f"Registry reference 'registry.{registry_type}.{key}' could not be resolved: {e.message}",
                        kind=ErrorKind.REGISTRY_KEY_NOT_FOUND,
                        suggestions=["Reload the reference data that created this entry"],
                    ) from None

        sample = self.registry.all_keys()[:10]
        raise ParsingError(
            f"Registry reference 'registry.{registry_type}.{key}' not found.",
            kind=ErrorKind.REGISTRY_KEY_NOT_FOUND,
            suggestions=[
                "Check the spelling of the registry type and key",
                "Make sure reference data has been loaded first",
                f"Try using 'registry.{singular}.{key}' instead",
                f"Some available keys: {', '.join(sample)}" if sample else "No registry keys are available",
            ],
        )

    # ------------------------------------------------------------
    # [[ expr ]]
    # ------------------------------------------------------------
    def _resolve_expressions(self, value: str, context: MutableMapping[str, Any]) -> Any:
        matches = list(EXPRESSION.finditer(value))
        if not matches:
            return value
        stripped = value.strip()
        if len(matches) == 1 and matches[0].group(0) == stripped:
            return self.evaluate(matches[0].group(1), context)
        return EXPRESSION.sub(lambda m: str(self.evaluate(m.group(1), context)), value)

    def namespace(self, context: MutableMapping[str, Any]) -> Dict[str, Any]:
        names = dict(self._functions)
        names["ref"] = lambda name: self.local(str(name).lstrip("@"), context)
        names["registry"] = self.registry.get
        names["registry_date"] = self.dates.resolve
        return names

    def evaluate(self, code: str, context: MutableMapping[str, Any]) -> Any:
        snippet = code.strip()
        try:
            result = SafeEvaluator(self.namespace(context)).evaluate(snippet)
        except ParsingError:
            raise
        except (ExpressionError, RegistryKeyNotFound, ArithmeticError, LookupError, TypeError, ValueError, AttributeError, RecursionError) as e:
            raise ParsingError(
                f"Error evaluating expression '{snippet}': {e}",
                kind=ErrorKind.EXPRESSION_EVALUATION_ERROR,
                suggestions=_EXPRESSION_SUGGESTIONS,
            ) from None
        log.debug("Evaluated expression: %s -> %r", snippet, result)
        return result


