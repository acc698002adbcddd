"""
Decoding of structures API payloads.

The backend answers in one of two shapes:
  1) canonical: {"epitopes": [...]} for filters,
                {"options": ..., "clusters": [...], "clustersNorm": [...]} for CDR3 search
  2) legacy flat rows: {"items": [...]}

Each payload is decoded into exactly one variant up front, and each variant
has a pure conversion to canonical entities. Anything else is a
ResponseShapeError.
"""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

from structure_browser.core.exceptions import ResponseShapeError
from structure_browser.core.filter_state import TreeFilter
from structure_browser.core.models import (
    CDR3SearchOptions,
    CDR3SearchResult,
    Cluster,
    Epitope,
    SearchResultEntry,
)

logger = logging.getLogger(__name__)

_CONVERSION_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


# -------------------------------------------------------------------------
# Variants
# -------------------------------------------------------------------------

@dataclass(frozen=True)
class CanonicalFilterResponse:
    epitopes: List[Mapping[str, Any]]


@dataclass(frozen=True)
class CanonicalCDR3Response:
    clusters: List[Mapping[str, Any]]
    clusters_norm: List[Mapping[str, Any]]


@dataclass(frozen=True)
class LegacyItemsResponse:
    items: List[Mapping[str, Any]]


FilterResponse = Union[CanonicalFilterResponse, LegacyItemsResponse]
CDR3Response = Union[CanonicalCDR3Response, LegacyItemsResponse]


def _list_of_objects(payload: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    values = payload.get(key)
    if not isinstance(values, list) or not all(isinstance(v, Mapping) for v in values):
        raise ResponseShapeError(f"Expected '{key}' to be a list of objects")
    return values


def decode_filter_response(payload: Any) -> FilterResponse:
    if not isinstance(payload, Mapping):
        raise ResponseShapeError("Filter response is not a JSON object")
    if "epitopes" in payload:
        return CanonicalFilterResponse(epitopes=_list_of_objects(payload, "epitopes"))
    if "items" in payload:
        return LegacyItemsResponse(items=_list_of_objects(payload, "items"))
    raise ResponseShapeError("Filter response has neither 'epitopes' nor 'items'")


def decode_cdr3_response(payload: Any) -> CDR3Response:
    if not isinstance(payload, Mapping):
        raise ResponseShapeError("CDR3 search response is not a JSON object")
    if "clusters" in payload or "clustersNorm" in payload:
        return CanonicalCDR3Response(
            clusters=_list_of_objects(payload, "clusters"),
            clusters_norm=_list_of_objects(payload, "clustersNorm"),
        )
    if "items" in payload:
        return LegacyItemsResponse(items=_list_of_objects(payload, "items"))
    raise ResponseShapeError("CDR3 search response has neither 'clusters' nor 'items'")


# -------------------------------------------------------------------------
# Legacy identity
# -------------------------------------------------------------------------

def filter_hash(tree_filter: TreeFilter) -> str:
    """
    Deterministic identity of a legacy result: identical filters give identical hashes.
    """
    return "filter:" + "|".join(f"{e.name}={e.value}" for e in tree_filter.entries)


def content_hash(clusters: List[Cluster]) -> str:
    """Identity derived from the metadata of the rows themselves."""
    metas = sorted(json.dumps(c.meta.to_dict(), sort_keys=True) for c in clusters)
    digest = hashlib.sha1("\n".join(metas).encode("utf-8")).hexdigest()
    return f"content:{digest}"


# -------------------------------------------------------------------------
# Conversions
# -------------------------------------------------------------------------

def _legacy_epitope_name(tree_filter: Optional[TreeFilter], clusters: List[Cluster]) -> str:
    if tree_filter is not None:
        for entry in tree_filter.entries:
            if entry.name == "antigen.epitope":
                return entry.value
    for cluster in clusters:
        if cluster.meta.antigen_epitope:
            return cluster.meta.antigen_epitope
    return ""


def filter_response_to_epitopes(
        response: FilterResponse,
        tree_filter: Optional[TreeFilter] = None,
) -> List[Epitope]:
    """
    Convert a decoded filter response into canonical epitopes.

    A legacy response becomes a single epitope wrapping one cluster per row.
    Its hash comes from the active filter entries, or from the rows' content
    when there is no filter.
    """
    try:
        if isinstance(response, CanonicalFilterResponse):
            return [Epitope.from_raw(e) for e in response.epitopes]

        clusters = [Cluster.from_raw(item) for item in response.items]
    except _CONVERSION_ERRORS as e:
        raise ResponseShapeError(f"Malformed filter response entry: {e}") from e

    if tree_filter is not None and not tree_filter.is_empty():
        hash_value = filter_hash(tree_filter)
    else:
        hash_value = content_hash(clusters)
    logger.debug("Wrapped legacy filter rows", extra={"n_items": len(clusters), "hash": hash_value})
    return [
        Epitope(
            epitope=_legacy_epitope_name(tree_filter, clusters),
            hash=hash_value,
            clusters=clusters,
            source_filter=tree_filter,
        )
    ]


def cdr3_response_to_result(response: CDR3Response, options: CDR3SearchOptions) -> CDR3SearchResult:
    """
    Convert a decoded CDR3 response into an (unranked) CDR3SearchResult.

    Legacy rows have no separate size-normalised ranking, so the same hits
    populate both lists.
    """
    try:
        if isinstance(response, CanonicalCDR3Response):
            return CDR3SearchResult(
                options=options,
                clusters=[SearchResultEntry.from_raw(e) for e in response.clusters],
                clusters_norm=[SearchResultEntry.from_raw(e) for e in response.clusters_norm],
            )

        entries = [SearchResultEntry.from_raw(item) for item in response.items]
    except _CONVERSION_ERRORS as e:
        raise ResponseShapeError(f"Malformed CDR3 response entry: {e}") from e

    return CDR3SearchResult(
        options=options,
        clusters=entries,
        clusters_norm=[SearchResultEntry(info=e.info, cdr3=e.cdr3, cluster=e.cluster) for e in entries],
    )


def members_link(payload: Any) -> str:
    """Extract the download link of a members export response."""
    if not isinstance(payload, Mapping) or not isinstance(payload.get("link"), str) or not payload["link"]:
        raise ResponseShapeError("Members export response has no 'link'")
    return payload["link"]
