from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional, Union

from .filter_state import FilterEntry, TreeFilter

# Facet tree level names, outermost first.
LEVEL_SPECIES = "species"
LEVEL_CHAIN = "gene"
LEVEL_MHC_CLASS = "mhc.class"
LEVEL_GENE = "mhc.a"
LEVEL_EPITOPE = "antigen.epitope"
LEVEL_STRUCTURE = "structure.id"


@dataclass(frozen=True)
class DeepLink:
    """
    A fully qualified facet path coming from a page URL.

    - species: "HomoSapiens"
    - chain: TCR chain, "TRA" / "TRB"
    - mhc_class: "MHCI" / "MHCII"
    - gene: MHC allele without subtype ("A*02")
    - epitope: epitope sequence ("GILGFVFTL")
    - structure_id: optional structure to focus on
    """

    species: str
    chain: str
    mhc_class: str
    gene: str
    epitope: str
    structure_id: Optional[str] = None

    def tree_path(self) -> List[str]:
        return [self.species, self.chain, self.mhc_class, self.gene, self.epitope]

    def to_filter(self) -> TreeFilter:
        entries = [
            FilterEntry(LEVEL_SPECIES, self.species),
            FilterEntry(LEVEL_CHAIN, self.chain),
            FilterEntry(LEVEL_MHC_CLASS, self.mhc_class),
            FilterEntry(LEVEL_GENE, self.gene),
            FilterEntry(LEVEL_EPITOPE, self.epitope),
        ]
        if self.structure_id:
            entries.append(FilterEntry(LEVEL_STRUCTURE, self.structure_id))
        return TreeFilter(entries=entries)


def parse_query_params(params: Mapping[str, str]) -> Union[DeepLink, str, None]:
    """
    Interpret structure page query parameters.

    Returns a DeepLink when species, tcr_chain, mhc_class, gene and epitope_seq
    are all present, otherwise the CDR3 `query` string if one is given,
    otherwise None (plain page load).
    """
    def get(key: str) -> str:
        return (params.get(key) or "").strip()

    species = get("species")
    chain = get("tcr_chain")
    mhc_class = get("mhc_class")
    gene = get("gene")
    epitope = get("epitope_seq")

    if species and chain and mhc_class and gene and epitope:
        return DeepLink(
            species=species,
            chain=chain,
            mhc_class=mhc_class,
            gene=gene,
            epitope=epitope,
            structure_id=get("structure_id") or None,
        )

    query = get("query")
    return query or None
