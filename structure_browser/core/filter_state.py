from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping


@dataclass(frozen=True)
class FilterEntry:
    """
    A single `level name = value` constraint of a tree filter.
    """
    name: str
    value: str


@dataclass
class TreeFilter:
    """
    Represents the facet path the user clicked in the metadata tree.

    Fields:

    - entries: (level name, value) pairs in the order the tree levels emitted them,
      the clicked level first and each enclosing level after it.

    Tree levels build filters bottom-up: the clicked level emits a one-entry
    filter and each enclosing level appends its own entry via `extended`.
    """

    entries: List[FilterEntry] = field(default_factory=list)

    def extended(self, name: str, value: str) -> TreeFilter:
        """
        Return a new filter with (name, value) appended after the current entries.
        """
        return TreeFilter(entries=[*self.entries, FilterEntry(name=name, value=value)])

    def is_empty(self) -> bool:
        return not self.entries

    def matches(self, path: Mapping[str, str]) -> bool:
        """
        True if a leaf at `path` (level name -> value, root to leaf) lies under
        this filter. Entries naming a level the path does not have are ignored.
        """
        return all(path[e.name] == e.value for e in self.entries if e.name in path)

    def to_dict(self) -> Dict[str, Any]:
        return {"entries": [{"name": e.name, "value": e.value} for e in self.entries]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TreeFilter:
        return cls(
            entries=[
                FilterEntry(name=str(e.get("name", "")), value=str(e.get("value", "")))
                for e in data.get("entries", [])
            ]
        )
