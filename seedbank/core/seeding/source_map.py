from __future__ import annotations

from typing import Dict, Optional, Tuple, Union

import yaml

PathPart = Union[str, int]
Location = Tuple[int, int]


class SourceMap:
    """
    1-based (line, column) of every mapping key and sequence element,
    keyed by its path from the document root.
    """

    def __init__(self, locations: Optional[Dict[Tuple[PathPart, ...], Location]] = None):
        self._locations: Dict[Tuple[PathPart, ...], Location] = dict(locations or {})

    @classmethod
    def from_text(cls, text: str) -> "SourceMap":
        try:
            root = yaml.compose(text, Loader=yaml.SafeLoader)
        except yaml.YAMLError:
            return cls()
        out = cls()
        if root is not None:
            out._walk(root, ())
        return out

    def _walk(self, node: yaml.Node, path: Tuple[PathPart, ...]) -> None:
        if isinstance(node, yaml.MappingNode):
            for key_node, value_node in node.value:
                if not isinstance(key_node, yaml.ScalarNode):
                    continue
                child = path + (key_node.value,)
                self._locations.setdefault(child, (key_node.start_mark.line + 1, key_node.start_mark.column + 1))
                self._walk(value_node, child)
        elif isinstance(node, yaml.SequenceNode):
            for i, item in enumerate(node.value):
                child = path + (i,)
                self._locations[child] = (item.start_mark.line + 1, item.start_mark.column + 1)
                self._walk(item, child)

    def locate(self, *path: PathPart) -> Optional[Location]:
        """Closest known location for ``path``, walking up to its parents."""
        parts = tuple(path)
        while parts:
            if parts in self._locations:
                return self._locations[parts]
            parts = parts[:-1]
        return None

    def line(self, *path: PathPart) -> Optional[int]:
        loc = self.locate(*path)
        return loc[0] if loc else None

    def __len__(self) -> int:
        return len(self._locations)
