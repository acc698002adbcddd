from __future__ import annotations

import pytest

from structure_browser.core.exceptions import ResponseShapeError
from structure_browser.core.filter_state import TreeFilter
from structure_browser.core.models import CDR3SearchOptions
from structure_browser.services.responses import (
    CanonicalCDR3Response,
    CanonicalFilterResponse,
    LegacyItemsResponse,
    cdr3_response_to_result,
    decode_cdr3_response,
    decode_filter_response,
    filter_hash,
    filter_response_to_epitopes,
    members_link,
)


def test_decode_picks_exactly_one_variant(cluster_factory):
    assert isinstance(decode_filter_response({"epitopes": []}), CanonicalFilterResponse)
    assert isinstance(decode_filter_response({"items": [cluster_factory("c", 1)]}), LegacyItemsResponse)
    assert isinstance(decode_cdr3_response({"clusters": [], "clustersNorm": []}), CanonicalCDR3Response)
    assert isinstance(decode_cdr3_response({"items": []}), LegacyItemsResponse)


@pytest.mark.parametrize("payload", ["text", {"clusters": []}, {"something": []}, {"items": [1, 2]}])
def test_decode_cdr3_rejects_unknown_shapes(payload):
    with pytest.raises(ResponseShapeError):
        decode_cdr3_response(payload)


def test_legacy_cdr3_rows_fill_both_lists():
    rows = [{"info": 1.5, "cdr3": "CASSF", "structure.id": "2VLK", "size": 3}]

    result = cdr3_response_to_result(decode_cdr3_response({"items": rows}), CDR3SearchOptions(cdr3="CASSF"))

    assert [e.cluster.cluster_id for e in result.clusters] == ["2VLK"]
    assert [e.cluster.cluster_id for e in result.clusters_norm] == ["2VLK"]
    assert result.clusters[0] is not result.clusters_norm[0]


def test_malformed_cdr3_entry_is_a_shape_error(cluster_factory):
    response = decode_cdr3_response({"clusters": [{"info": "high", "cdr3": "C", "cluster": cluster_factory("c", 1)}], "clustersNorm": []})
    with pytest.raises(ResponseShapeError):
        cdr3_response_to_result(response, CDR3SearchOptions(cdr3="C"))


def test_legacy_filter_epitope_name_falls_back_to_meta(cluster_factory):
    epitopes = filter_response_to_epitopes(
        decode_filter_response({"items": [cluster_factory("c", 1)]}),
        TreeFilter().extended("species", "HomoSapiens"),
    )

    assert epitopes[0].epitope == "GILGFVFTL"
    assert epitopes[0].hash == filter_hash(TreeFilter().extended("species", "HomoSapiens"))


def test_members_link():
    assert members_link({"link": "/downloads/c1.tsv"}) == "/downloads/c1.tsv"
    for bad in ({}, {"link": ""}, {"link": 3}, None):
        with pytest.raises(ResponseShapeError):
            members_link(bad)
