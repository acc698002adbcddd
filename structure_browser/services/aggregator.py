"""
Merging of filter / CDR3 search payloads into the accumulated result state.

Every function here is pure: it either returns new state or raises, so a
caller can publish the outcome only when the whole pipeline succeeded.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from structure_browser.core.filter_state import TreeFilter
from structure_browser.core.models import CDR3SearchOptions, CDR3SearchResult, Cluster, Epitope, SearchResultEntry
from structure_browser.services.links import LinkResolver
from structure_browser.services.responses import (
    cdr3_response_to_result,
    decode_cdr3_response,
    decode_filter_response,
    filter_response_to_epitopes,
)

logger = logging.getLogger(__name__)


def has_structure_identity(cluster: Cluster) -> bool:
    return bool(cluster.meta.structure_id)


def filter_identified(clusters: Iterable[Cluster]) -> List[Cluster]:
    """Keep clusters that resolve to a structure id; the rest have no visual evidence."""
    return [c for c in clusters if has_structure_identity(c)]


def rank_clusters(clusters: Sequence[Cluster]) -> List[Cluster]:
    """Descending size; equal sizes keep their input order."""
    return sorted(clusters, key=lambda c: -c.size)


def rank_search_entries(entries: Sequence[SearchResultEntry]) -> List[SearchResultEntry]:
    """Descending info, then descending cluster size; exact ties keep their input order."""
    return sorted(entries, key=lambda e: (-e.info, -e.cluster.size))


def merge_epitopes(existing: Sequence[Epitope], incoming: Sequence[Epitope]) -> Tuple[List[Epitope], List[Epitope]]:
    """
    Append epitopes whose hash is not known yet.

    Known epitopes are never replaced or merged, which keeps at most one
    copy per hash across repeated and overlapping queries.

    :return: (merged list, newly added epitopes)
    """
    seen = {e.hash for e in existing}
    added: List[Epitope] = []
    for epitope in incoming:
        if epitope.hash in seen:
            continue
        seen.add(epitope.hash)
        added.append(epitope)
    return [*existing, *added], added


def prepare_epitope(epitope: Epitope, resolver: LinkResolver) -> Epitope:
    clusters = rank_clusters(filter_identified(epitope.clusters))
    return replace(epitope, clusters=[resolver.annotate_cluster(c) for c in clusters])


def dedupe_search_entries(entries: Iterable[SearchResultEntry]) -> List[SearchResultEntry]:
    """Collapse repeated (cdr3, cluster id) hits, keeping the first occurrence."""
    seen = set()
    kept: List[SearchResultEntry] = []
    for entry in entries:
        key = (entry.cdr3, entry.cluster.cluster_id)
        if key in seen:
            continue
        seen.add(key)
        kept.append(entry)
    return kept


def prepare_search_entries(entries: Optional[Sequence[SearchResultEntry]], resolver: LinkResolver) -> List[SearchResultEntry]:
    kept = dedupe_search_entries(e for e in entries or [] if has_structure_identity(e.cluster))
    return [replace(e, cluster=resolver.annotate_cluster(e.cluster)) for e in rank_search_entries(kept)]


def aggregate_filter_result(
        existing: Sequence[Epitope],
        payload: Any,
        tree_filter: Optional[TreeFilter],
        resolver: LinkResolver,
) -> Tuple[List[Epitope], List[Epitope]]:
    """
    Normalise a filter payload and merge it into `existing`.

    :return: (merged epitopes, newly added epitopes)
    :raises ResponseShapeError: if the payload fits no known shape.
    """
    incoming = filter_response_to_epitopes(decode_filter_response(payload), tree_filter)
    _, added = merge_epitopes(existing, incoming)
    prepared = [prepare_epitope(e, resolver) for e in added]
    merged = [*existing, *prepared]
    logger.debug(
        "Filter result merged",
        extra={"n_incoming": len(incoming), "n_added": len(prepared), "n_total": len(merged)},
    )
    return merged, prepared


def aggregate_cdr3_result(payload: Any, options: CDR3SearchOptions, resolver: LinkResolver) -> CDR3SearchResult:
    """
    Normalise a CDR3 search payload; raw and normalised lists are ranked independently.

    :raises ResponseShapeError: if the payload fits no known shape.
    """
    result = cdr3_response_to_result(decode_cdr3_response(payload), options)
    return CDR3SearchResult(
        options=result.options,
        clusters=prepare_search_entries(result.clusters, resolver),
        clusters_norm=prepare_search_entries(result.clusters_norm, resolver),
    )
