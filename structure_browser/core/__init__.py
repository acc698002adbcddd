"""
Core domain layer: facet tree, selection operations, result models,
reactive channels and the deferred-callback scheduler
"""

from .facet_tree import FacetTree, FacetTreeLevel, FacetTreeLevelValue
from .filter_state import FilterEntry, TreeFilter
from .models import (
    CDR3SearchOptions,
    CDR3SearchResult,
    Cluster,
    ClusterMeta,
    Epitope,
    EpitopeViewOptions,
    SearchResultEntry,
)
from .reactive import EventChannel, ReplayChannel, ServiceEvent

__all__ = [
    "FacetTree",
    "FacetTreeLevel",
    "FacetTreeLevelValue",
    "FilterEntry",
    "TreeFilter",
    "CDR3SearchOptions",
    "CDR3SearchResult",
    "Cluster",
    "ClusterMeta",
    "Epitope",
    "EpitopeViewOptions",
    "SearchResultEntry",
    "EventChannel",
    "ReplayChannel",
    "ServiceEvent",
]
