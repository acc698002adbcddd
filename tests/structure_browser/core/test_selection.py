from __future__ import annotations

import itertools

from structure_browser.core import selection
from structure_browser.core.facet_tree import FacetTree, FacetTreeLevel, FacetTreeLevelValue


def _tree(payload) -> FacetTree:
    return FacetTree.from_dict(payload)


def _leaves_under(value: FacetTreeLevelValue):
    if value.next is None:
        return [value]
    return [leaf for _, leaf in selection.extract_leaves(value.next)]


def test_is_selected_equals_and_of_subtree_leaves_for_every_assignment(metadata_payload):
    tree = _tree(metadata_payload)
    leaves = [leaf for _, leaf in selection.extract_leaves(tree.root)]
    nodes = list(tree.iter_values())

    for flags in itertools.product([False, True], repeat=len(leaves)):
        for leaf, flag in zip(leaves, flags):
            leaf.is_selected = flag
        for node in nodes:
            expected = all(leaf.is_selected for leaf in _leaves_under(node))
            assert selection.is_selected(node) == expected


def test_select_non_leaf_selects_exactly_its_subtree(metadata_payload):
    tree = _tree(metadata_payload)
    tra = tree.find_path(["HomoSapiens", "TRA"])

    selection.select(tra)

    selected = selection.selected_leaves(tree.root)
    assert [leaf.hash for leaf in selected] == ["h-gil-tra", "h-nlv-tra"]
    assert selection.is_selected(tra)
    assert not selection.is_selected(tree.root.values[0])


def test_discard_removes_exactly_the_same_set(metadata_payload):
    tree = _tree(metadata_payload)
    mus = tree.root.values[1]
    human = tree.root.values[0]
    selection.select(mus)
    selection.select(human)

    selection.discard(human)

    assert [leaf.hash for leaf in selection.selected_leaves(tree.root)] == ["h-mus"]


def test_extract_leaves_is_depth_first_and_skips_non_leaves(metadata_payload):
    tree = _tree(metadata_payload)
    pairs = selection.extract_leaves(tree.root)

    assert [h for h, _ in pairs] == ["h-gil-tra", "h-nlv-tra", "h-gil-trb", "h-mus"]
    assert all(v.is_leaf for _, v in pairs)


def test_find_leaves_by_hash(metadata_payload):
    tree = _tree(metadata_payload)
    found = selection.find_leaves(tree.root, "h-gil-trb")
    assert len(found) == 1
    assert found[0].value == "GILGFVFTL"
    assert selection.find_leaves(tree.root, "missing") == []


def test_empty_non_leaf_is_vacuously_selected():
    empty = FacetTreeLevelValue(value="x", next=FacetTreeLevel(name="gene", values=[]))
    assert selection.is_selected(empty) is True


def test_toggle_header_opens_non_leaf_and_selects_leaf(metadata_payload):
    tree = _tree(metadata_payload)
    human = tree.root.values[0]
    leaf = tree.find_path(["MusMusculus", "TRB", "MHCII", "H2-IAb", "HGFVRIH"])

    assert selection.toggle_header(human) is False
    assert human.is_opened is False

    assert selection.toggle_header(leaf) is True
    assert leaf.is_selected is True
    assert selection.toggle_header(leaf) is True
    assert leaf.is_selected is False


def test_open_close_value(metadata_payload):
    tree = _tree(metadata_payload)
    tra = tree.find_path(["HomoSapiens", "TRA"])
    selection.open_value(tra)
    assert tra.is_opened
    selection.close_value(tra)
    assert not tra.is_opened


def test_leaf_paths_carry_every_level_from_the_root(metadata_payload):
    tree = _tree(metadata_payload)
    paths = selection.leaf_paths(tree.root)

    assert [leaf.hash for _, leaf in paths] == ["h-gil-tra", "h-nlv-tra", "h-gil-trb", "h-mus"]
    assert paths[3][0] == {
        "species": "MusMusculus",
        "gene": "TRB",
        "mhc.class": "MHCII",
        "mhc.a": "H2-IAb",
        "antigen.epitope": "HGFVRIH",
    }
