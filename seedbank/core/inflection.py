"""Minimal English inflection for model-type names (``menu_items`` -> ``menu_item``)."""
from __future__ import annotations

import re
from typing import List, Tuple

_UNCOUNTABLE = {"data", "equipment", "information", "money", "news", "series", "species", "staff"}

_IRREGULAR = {
    "people": "person",
    "men": "man",
    "women": "woman",
    "children": "child",
    "mice": "mouse",
    "geese": "goose",
    "teeth": "tooth",
    "feet": "foot",
}

# first match wins
_RULES: List[Tuple[str, str]] = [
    (r"(database)s$", r"\1"),
    (r"(quiz)zes$", r"\1"),
    (r"(matri|vert|ind)ices$", r"\1ix"),
    (r"(alias|status|address|bus|campus)es$", r"\1"),
    (r"(octop|vir)i$", r"\1us"),
    (r"(cris|ax|test)es$", r"\1is"),
    (r"(shoe)s$", r"\1"),
    (r"(o)es$", r"\1"),
    (r"(x|ch|ss|sh|zz)es$", r"\1"),
    (r"(m)ovies$", r"\1ovie"),
    (r"([^aeiouy]|qu)ies$", r"\1y"),
    (r"([lr])ves$", r"\1f"),
    (r"(ti|analy|ba|diagno|parenthe|progno|synop|the)ses$", r"\1sis"),
    (r"([ti])a$", r"\1um"),
    (r"(ss)$", r"\1"),
    (r"(us)$", r"\1"),
    (r"s$", ""),
]


def underscore(name: str) -> str:
    s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", str(name))
    s = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s)
    return s.replace("-", "_").replace(" ", "_").lower()


def singularize(word: str) -> str:
    """Singular form of the last ``_``-separated segment of ``word``."""
    word = str(word)
    head, sep, last = word.rpartition("_")
    lower = last.lower()
    if not lower or lower in _UNCOUNTABLE:
        return word
    if lower in _IRREGULAR:
        return head + sep + _IRREGULAR[lower]
    for pattern, repl in _RULES:
        if re.search(pattern, lower):
            return head + sep + re.sub(pattern, repl, lower)
    return word
