"""
Selection operations over the facet tree.

Selection state lives only on leaves. Selecting or discarding a non-leaf
fans out to every leaf beneath it, and the selection of a non-leaf is
computed on demand, never cached.
"""
from __future__ import annotations

from typing import Dict, List, Tuple

from .facet_tree import FacetTreeLevel, FacetTreeLevelValue

LeafPair = Tuple[str, FacetTreeLevelValue]


def is_selected(value: FacetTreeLevelValue) -> bool:
    """
    True iff `value` is a selected leaf, or a non-leaf whose every leaf is selected.

    Every child is visited (no short-circuit); a non-leaf with no children is
    vacuously selected.
    """
    if value.next is None:
        return value.is_selected
    result = True
    for child in value.next.values:
        result = is_selected(child) and result
    return result


def select(value: FacetTreeLevelValue) -> None:
    if value.next is None:
        value.is_selected = True
        return
    for child in value.next.values:
        select(child)


def discard(value: FacetTreeLevelValue) -> None:
    if value.next is None:
        value.is_selected = False
        return
    for child in value.next.values:
        discard(child)


def extract_leaves(level: FacetTreeLevel) -> List[LeafPair]:
    """
    Flatten a tree level into (hash, leaf) pairs, depth-first, leaves only.
    """
    leaves: List[LeafPair] = []
    for value in level.values:
        if value.next is None:
            leaves.append((value.hash or "", value))
        else:
            leaves.extend(extract_leaves(value.next))
    return leaves


def selected_leaves(level: FacetTreeLevel) -> List[FacetTreeLevelValue]:
    return [value for _, value in extract_leaves(level) if value.is_selected]


def find_leaves(level: FacetTreeLevel, hash_value: str) -> List[FacetTreeLevelValue]:
    return [value for h, value in extract_leaves(level) if h == hash_value]


def leaf_paths(level: FacetTreeLevel) -> List[Tuple[Dict[str, str], FacetTreeLevelValue]]:
    """
    Every leaf with its path from the root: {level name: value} for each level passed.
    """
    out: List[Tuple[Dict[str, str], FacetTreeLevelValue]] = []
    for value in level.values:
        path = {level.name: value.value}
        if value.next is None:
            out.append((path, value))
            continue
        for sub_path, leaf in leaf_paths(value.next):
            out.append(({**path, **sub_path}, leaf))
    return out


# -------------------------------------------------------------------------
# Expansion flags
# -------------------------------------------------------------------------

def open_value(value: FacetTreeLevelValue) -> None:
    value.is_opened = True


def close_value(value: FacetTreeLevelValue) -> None:
    value.is_opened = False


def toggle_header(value: FacetTreeLevelValue) -> bool:
    """
    Handle a click on a value header: non-leaves toggle expansion, leaves
    toggle selection. Returns True when the click changed selection.
    """
    if value.next is not None:
        value.is_opened = not value.is_opened
        return False
    if value.is_selected:
        discard(value)
    else:
        select(value)
    return True
