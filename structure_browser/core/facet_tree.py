from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Optional, Sequence

from .exceptions import ResponseShapeError

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class FacetTreeLevelValue:
    """
    One value of a facet tree level.

    A value is a leaf iff `next` is None. Only leaves carry a `hash` (the
    identity of one epitope) and a stored `is_selected` flag; the selection
    state of a non-leaf is always computed from its subtree.
    """

    value: str
    hash: Optional[str] = None
    next: Optional[FacetTreeLevel] = None
    is_opened: bool = False
    is_selected: bool = False

    @property
    def is_leaf(self) -> bool:
        return self.next is None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> FacetTreeLevelValue:
        next_raw = raw.get("next")
        next_level = FacetTreeLevel.from_dict(next_raw) if next_raw is not None else None
        hash_value = raw.get("hash")
        return cls(
            value=str(raw["value"]),
            hash=str(hash_value) if hash_value is not None else None,
            next=next_level,
            is_opened=bool(raw.get("isOpened", raw.get("is_opened", False))),
            is_selected=bool(raw.get("isSelected", raw.get("is_selected", False))) if next_level is None else False,
        )


@dataclass(eq=False)
class FacetTreeLevel:
    """
    An ordered list of sibling values sharing a level name ("species", "gene", ...).
    """

    name: str
    values: List[FacetTreeLevelValue] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> FacetTreeLevel:
        return cls(
            name=str(raw["name"]),
            values=[FacetTreeLevelValue.from_dict(v) for v in raw.get("values") or []],
        )


class FacetTree:
    """
    Hierarchical taxonomy species -> chain -> MHC class -> gene -> epitope.

    The tree is built once per session from the metadata payload and is
    read-only afterwards, apart from the `is_opened` / `is_selected` flags.
    All top-level values start opened so the tree is initially expanded.
    """

    def __init__(self, root: FacetTreeLevel):
        self.root = root
        for value in root.values:
            value.is_opened = True

    @classmethod
    def from_dict(cls, payload: Any) -> FacetTree:
        """
        Build the tree from a `{"root": {...}}` metadata payload.

        :raises ResponseShapeError: if the payload has no usable root level.
        """
        if not isinstance(payload, Mapping) or not isinstance(payload.get("root"), Mapping):
            raise ResponseShapeError("Metadata payload has no 'root' level")
        try:
            root = FacetTreeLevel.from_dict(payload["root"])
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseShapeError(f"Malformed metadata tree: {e}") from e
        logger.debug("Facet tree built", extra={"n_top_level": len(root.values)})
        return cls(root)

    def iter_values(self) -> Iterator[FacetTreeLevelValue]:
        """Depth-first iteration over every value, leaves and non-leaves."""
        return _iter_level(self.root)

    def find_path(self, parts: Sequence[str]) -> Optional[FacetTreeLevelValue]:
        """
        Walk the tree level by level matching each part against `value.value`.
        Returns the value reached by the last part, or None as soon as a level
        has no match (or the path is longer than the tree is deep).
        """
        level: Optional[FacetTreeLevel] = self.root
        found: Optional[FacetTreeLevelValue] = None
        for part in parts:
            if level is None:
                return None
            found = next((v for v in level.values if v.value == part), None)
            if found is None:
                return None
            level = found.next
        return found


def _iter_level(level: FacetTreeLevel) -> Iterator[FacetTreeLevelValue]:
    for value in level.values:
        yield value
        if value.next is not None:
            yield from _iter_level(value.next)
