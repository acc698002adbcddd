from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlencode

from structure_browser.core.exceptions import StructureBrowserError
from structure_browser.core.models import Cluster, ClusterMeta
from structure_browser.services.availability import AvailabilityIndex

logger = logging.getLogger(__name__)

DEFAULT_STRUCTURE_FILES_ROOT = "/structure-files"
INERT_LINK = "#"

_ALLELE_SUBTYPE = re.compile(r":.+")

MotifParams = Tuple[str, str, str, str, str]


# -------------------------------------------------------------------------
# Pure derivations
# -------------------------------------------------------------------------

def strip_allele_subtype(allele: Optional[str]) -> Optional[str]:
    """'A*02:01' -> 'A*02'"""
    if allele is None:
        return None
    return _ALLELE_SUBTYPE.sub("", allele)


def structure_image_url(meta: ClusterMeta, root: str = DEFAULT_STRUCTURE_FILES_ROOT) -> Optional[str]:
    """
    Image of the solved structure, filed under cd4/ or cd8/ by cell subset.
    Without a structure id there is no image.
    """
    structure_id = meta.structure_id
    if not structure_id:
        return None
    subset = (meta.cell_subset or "").lower()
    directory = "cd4" if "cd4" in subset else "cd8"
    return f"{root}/{directory}/{structure_id}.png"


def assign_image_url(cluster: Cluster, root: str = DEFAULT_STRUCTURE_FILES_ROOT) -> Cluster:
    """
    Fill in `image_url` from metadata. A cluster that already has one is returned unchanged.
    """
    if cluster.image_url:
        return cluster
    url = structure_image_url(cluster.meta, root)
    if url is None:
        return cluster
    return cluster.with_image_url(url)


def motif_link_params(meta: ClusterMeta) -> Optional[MotifParams]:
    """
    (species, tcr chain, mhc class, gene, epitope) or None when any of them is missing.
    """
    gene = strip_allele_subtype(meta.mhc_a)
    params = (meta.species, meta.gene, meta.mhc_class, gene, meta.antigen_epitope)
    if not all(params):
        return None
    return params  # type: ignore[return-value]


def _query(pairs: Sequence[Tuple[str, str]]) -> str:
    return urlencode(list(pairs), safe="*")


def motif_link(meta: ClusterMeta) -> str:
    params = motif_link_params(meta)
    if params is None:
        return INERT_LINK
    species, chain, mhc_class, gene, epitope = params
    return "/motif?" + _query([
        ("species", species),
        ("tcr_chain", chain),
        ("mhc_class", mhc_class),
        ("gene", gene),
        ("epitope_seq", epitope),
    ])


def structure_page_link(meta: ClusterMeta) -> Optional[str]:
    params = motif_link_params(meta)
    if params is None or not meta.structure_id:
        return None
    species, chain, mhc_class, gene, epitope = params
    return "/structure?" + _query([
        ("species", species),
        ("tcr_chain", chain),
        ("mhc_class", mhc_class),
        ("gene", gene),
        ("epitope_seq", epitope),
        ("structure_id", meta.structure_id),
    ])


# -------------------------------------------------------------------------
# Availability-gated resolution
# -------------------------------------------------------------------------

@dataclass(frozen=True)
class MotifLink:
    href: str = INERT_LINK
    active: bool = False


@dataclass(frozen=True)
class StructureLink:
    page_href: Optional[str] = None
    image_url: Optional[str] = None
    active: bool = False


class LinkResolver:
    """
    Derives navigation links and images from row metadata.

    Links start inert and only become active once the availability index
    confirms the structure/motif exists; a failed or negative check keeps
    them inert.
    """

    def __init__(
            self,
            availability: Optional[AvailabilityIndex] = None,
            structure_files_root: str = DEFAULT_STRUCTURE_FILES_ROOT,
    ):
        self.availability = availability
        self.structure_files_root = structure_files_root

    def annotate_cluster(self, cluster: Cluster) -> Cluster:
        return assign_image_url(cluster, self.structure_files_root)

    async def resolve_motif(self, meta: ClusterMeta) -> MotifLink:
        params = motif_link_params(meta)
        if params is None or self.availability is None:
            return MotifLink()
        try:
            available = await self.availability.has_motif(*params)
        except StructureBrowserError as e:
            logger.debug("Motif availability check failed", extra={"error": str(e)})
            return MotifLink()
        if not available:
            return MotifLink()
        return MotifLink(href=motif_link(meta), active=True)

    async def resolve_structure(self, meta: ClusterMeta) -> StructureLink:
        if not meta.structure_id or self.availability is None:
            return StructureLink()
        try:
            available = await self.availability.has_structure(meta.structure_id)
        except StructureBrowserError as e:
            logger.debug("Structure availability check failed", extra={"error": str(e)})
            return StructureLink()
        if not available:
            return StructureLink()
        return StructureLink(
            page_href=structure_page_link(meta),
            image_url=structure_image_url(meta, self.structure_files_root),
            active=True,
        )

    async def resolve_structures(self, metas: Sequence[ClusterMeta]) -> List[StructureLink]:
        """Resolve many rows at once; they share the index's single load."""
        return list(await asyncio.gather(*(self.resolve_structure(m) for m in metas)))
