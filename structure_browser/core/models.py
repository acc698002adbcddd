from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from .filter_state import TreeFilter

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------------
# Cluster metadata
# -------------------------------------------------------------------------

# Raw meta keys arrive as "mhc.class", "mhcclass", "mhcClass", "mhc_class", ...
# They are folded (lower-case, separators removed) before lookup.
_META_KEY_ALIASES: Dict[str, str] = {
    "species": "species",
    "gene": "gene",
    "tcrchain": "gene",
    "chain": "gene",
    "mhcclass": "mhc_class",
    "mhca": "mhc_a",
    "mhcb": "mhc_b",
    "antigenepitope": "antigen_epitope",
    "epitope": "antigen_epitope",
    "epitopeseq": "antigen_epitope",
    "antigengene": "antigen_gene",
    "antigenspecies": "antigen_species",
    "cellsubset": "cell_subset",
    "subset": "cell_subset",
    "structureid": "structure_id",
}

# Canonical (dotted) spelling used when meta is written back out.
_META_DOTTED: Dict[str, str] = {
    "species": "species",
    "gene": "gene",
    "mhc_class": "mhc.class",
    "mhc_a": "mhc.a",
    "mhc_b": "mhc.b",
    "antigen_epitope": "antigen.epitope",
    "antigen_gene": "antigen.gene",
    "antigen_species": "antigen.species",
    "cell_subset": "cell.subset",
    "structure_id": "structure.id",
}


def fold_meta_key(key: str) -> str:
    """
    Fold a raw metadata key to its spelling-insensitive form:
    "mhc.class", "mhc_class", "mhcClass" and "MHC-class" all become "mhcclass".
    """
    return "".join(ch for ch in str(key).lower() if ch not in "._- ")


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ClusterMeta:
    """
    Biological attributes shared by every member of a cluster.

    - species: host species ("HomoSapiens")
    - gene: TCR chain ("TRA" / "TRB")
    - mhc_class: "MHCI" / "MHCII"
    - mhc_a / mhc_b: MHC alleles ("HLA-A*02:01")
    - antigen_epitope / antigen_gene / antigen_species: antigen description
    - cell_subset: T-cell subset ("CD4+", "CD8")
    - structure_id: identifier of the solved structure, if any
    - extra: raw keys that have no canonical field
    """

    species: Optional[str] = None
    gene: Optional[str] = None
    mhc_class: Optional[str] = None
    mhc_a: Optional[str] = None
    mhc_b: Optional[str] = None
    antigen_epitope: Optional[str] = None
    antigen_gene: Optional[str] = None
    antigen_species: Optional[str] = None
    cell_subset: Optional[str] = None
    structure_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_raw(cls, raw: Any) -> ClusterMeta:
        """
        Build a ClusterMeta from a raw mapping, tolerating key spelling variants.

        A JSON string is decoded first; anything unparseable yields empty metadata.
        When two raw keys fold to the same field, the first non-empty one wins.
        """
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                logger.debug("Ignoring unparseable cluster meta string")
                return cls()
        if not isinstance(raw, Mapping):
            return cls()

        values: Dict[str, Optional[str]] = {}
        extra: Dict[str, Any] = {}
        for key, value in raw.items():
            name = _META_KEY_ALIASES.get(fold_meta_key(key))
            if name is None:
                extra[str(key)] = value
                continue
            if values.get(name) is None:
                values[name] = _clean(value)

        return cls(**values, extra=extra)

    def overlaid(self, other: ClusterMeta) -> ClusterMeta:
        """Return a copy where every field set on `other` replaces this one."""
        values = {name: getattr(other, name) for name in _META_DOTTED if getattr(other, name) is not None}
        return replace(self, **values, extra={**self.extra, **other.extra})

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name, dotted in _META_DOTTED.items():
            value = getattr(self, name)
            if value is not None:
                out[dotted] = value
        return out


# -------------------------------------------------------------------------
# Clusters and epitopes
# -------------------------------------------------------------------------

# Row keys describing the cluster itself, never metadata
_CLUSTER_KEYS = frozenset({
    "meta", "clusterId", "cluster_id", "cid", "size", "length",
    "vsegm", "jsegm", "v", "j", "entries", "imageUrl", "image_url",
})


def _first(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


@dataclass(frozen=True)
class ClusterEntry:
    """One CDR3 clonotype inside a cluster."""

    cdr3: str
    v: str = ""
    j: str = ""
    cdr3_v_end: int = -1
    cdr3_j_start: int = -1
    count: int = 0
    freq: float = 0.0

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> ClusterEntry:
        return cls(
            cdr3=str(_first(raw, "cdr3", default="")),
            v=str(_first(raw, "v", "vsegm", default="")),
            j=str(_first(raw, "j", "jsegm", default="")),
            cdr3_v_end=int(_first(raw, "cdr3vEnd", "cdr3_v_end", default=-1)),
            cdr3_j_start=int(_first(raw, "cdr3jStart", "cdr3_j_start", default=-1)),
            count=int(_first(raw, "count", default=0)),
            freq=float(_first(raw, "freq", "frequency", default=0.0)),
        )


@dataclass
class Cluster:
    """
    A group of structurally/sequence-similar receptors sharing metadata.

    `image_url` is filled in by the link resolver and never overwritten once set.
    """

    cluster_id: str
    size: int
    length: int = 0
    vsegm: str = ""
    jsegm: str = ""
    entries: List[ClusterEntry] = field(default_factory=list)
    meta: ClusterMeta = field(default_factory=ClusterMeta)
    image_url: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> Cluster:
        """
        Build a Cluster from a raw payload object.

        Legacy flat rows carry species, chain, MHC and epitope as top-level
        columns and keep only structure id and subset in a "meta" column
        (often a JSON string). The top-level columns are read first and the
        "meta" column is laid over them.
        """
        row_meta = ClusterMeta.from_raw({k: v for k, v in raw.items() if k not in _CLUSTER_KEYS})
        meta_raw = raw.get("meta")
        meta = row_meta.overlaid(ClusterMeta.from_raw(meta_raw)) if meta_raw is not None else row_meta
        cluster_id = _first(raw, "clusterId", "cluster_id", "cid", default=None)
        if cluster_id is None:
            cluster_id = meta.structure_id or ""
        return cls(
            cluster_id=str(cluster_id),
            size=int(_first(raw, "size", default=1)),
            length=int(_first(raw, "length", default=0)),
            vsegm=str(_first(raw, "vsegm", "v", default="")),
            jsegm=str(_first(raw, "jsegm", "j", default="")),
            entries=[ClusterEntry.from_raw(e) for e in raw.get("entries") or []],
            meta=meta,
            image_url=_clean(_first(raw, "imageUrl", "image_url", default=None)),
        )

    def with_image_url(self, url: Optional[str]) -> Cluster:
        return replace(self, image_url=url)


@dataclass
class Epitope:
    """
    Container of clusters for one epitope leaf of the facet tree.

    Identity across incremental loads is `hash` only.

    Epitopes decoded from legacy rows have a synthetic hash that matches no
    leaf; `source_filter` keeps the filter that produced them so they can
    still be tied back to the selected leaves.
    """

    epitope: str
    hash: str
    clusters: List[Cluster] = field(default_factory=list)
    source_filter: Optional[TreeFilter] = field(default=None, compare=False)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> Epitope:
        return cls(
            epitope=str(_first(raw, "epitope", default="")),
            hash=str(raw["hash"]),
            clusters=[Cluster.from_raw(c) for c in raw.get("clusters") or []],
        )


# -------------------------------------------------------------------------
# CDR3 search
# -------------------------------------------------------------------------

@dataclass
class SearchResultEntry:
    """A ranked hit of a CDR3 sequence search."""

    info: float
    cdr3: str
    cluster: Cluster

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> SearchResultEntry:
        cluster_raw = raw.get("cluster")
        return cls(
            info=float(_first(raw, "info", default=0.0)),
            cdr3=str(_first(raw, "cdr3", default="")),
            cluster=Cluster.from_raw(cluster_raw if isinstance(cluster_raw, Mapping) else raw),
        )


@dataclass(frozen=True)
class CDR3SearchOptions:
    cdr3: str = ""
    top: int = 15
    gene: str = "Both"
    substring: bool = False

    def to_request(self) -> Dict[str, Any]:
        return {"cdr3": self.cdr3, "substring": self.substring, "gene": self.gene, "top": self.top}


@dataclass
class CDR3SearchResult:
    """
    Outcome of a CDR3 search: raw and size-normalised hit lists, each
    ranked independently. Both lists are None in the empty shell published
    before the first search.
    """

    options: CDR3SearchOptions
    clusters: Optional[List[SearchResultEntry]] = None
    clusters_norm: Optional[List[SearchResultEntry]] = None

    @classmethod
    def empty(cls, options: Optional[CDR3SearchOptions] = None) -> CDR3SearchResult:
        return cls(options=options or CDR3SearchOptions())

    def entries(self, normalized: bool = False) -> List[SearchResultEntry]:
        chosen = self.clusters_norm if normalized else self.clusters
        return list(chosen or [])


@dataclass(frozen=True)
class EpitopeViewOptions:
    """Whether clusters are displayed with normalised or raw frequencies."""
    is_normalized: bool = False
