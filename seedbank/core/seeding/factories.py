from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

log = logging.getLogger("seedbank.factories")


class FactoryNotFound(LookupError):
    pass


class UnknownTrait(ValueError):
    pass


@dataclass
class FactoryDefinition:
    """
    A named constructor.

    ``defaults`` values may be zero-argument callables, evaluated per build.
    ``traits`` map a trait name to attribute overrides applied in listed order
    before explicit attributes.
    """

    name: str
    build: Callable[..., Any]
    defaults: Dict[str, Any] = field(default_factory=dict)
    traits: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    persist: Optional[Callable[[Any], Any]] = None

    def attributes_for(self, traits: Iterable[str], overrides: Mapping[str, Any]) -> Dict[str, Any]:
        attrs: Dict[str, Any] = dict(self.defaults)
        for trait in traits:
            if trait not in self.traits:
                raise UnknownTrait(
                    f"Factory '{self.name}' has no trait '{trait}' (known: {', '.join(sorted(self.traits)) or 'none'})"
                )
            attrs.update(self.traits[trait])
        # explicit attributes are taken as-is, only defaults/traits are lazy
        for key in overrides:
            attrs.pop(key, None)
        out = {k: (v() if callable(v) else v) for k, v in attrs.items()}
        out.update(overrides)
        return out


class FactoryRegistry:
    """
    Pluggable named-constructor registry used by the factory strategy.

    Built objects are persisted through the definition's ``persist`` hook,
    else through the registry-wide ``store`` (anything with ``add(obj)``).
    """

    def __init__(self, store: Any = None):
        self.store = store
        self._definitions: Dict[str, FactoryDefinition] = {}

    def define(
        self,
        name: str,
        build: Callable[..., Any],
        *,
        defaults: Optional[Dict[str, Any]] = None,
        traits: Optional[Dict[str, Dict[str, Any]]] = None,
        persist: Optional[Callable[[Any], Any]] = None,
    ) -> FactoryDefinition:
        definition = FactoryDefinition(
            name=name,
            build=build,
            defaults=dict(defaults or {}),
            traits=dict(traits or {}),
            persist=persist,
        )
        self._definitions[name] = definition
        return definition

    def names(self) -> List[str]:
        return sorted(self._definitions)

    def has(self, name: str) -> bool:
        return name in self._definitions

    def get(self, name: str) -> FactoryDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise FactoryNotFound(
                f"Factory not registered: {name} (known: {', '.join(self.names()) or 'none'})"
            ) from None

    def build(self, name: str, traits: Iterable[str] = (), attributes: Optional[Mapping[str, Any]] = None) -> Any:
        definition = self.get(name)
        return definition.build(**definition.attributes_for(traits, attributes or {}))

    def create(self, name: str, traits: Iterable[str] = (), attributes: Optional[Mapping[str, Any]] = None) -> Any:
        definition = self.get(name)
        obj = definition.build(**definition.attributes_for(traits, attributes or {}))
        if definition.persist is not None:
            result = definition.persist(obj)
            obj = result if result is not None else obj
        elif self.store is not None:
            self.store.add(obj)
        log.debug("Factory %s built %s", name, type(obj).__name__)
        return obj
