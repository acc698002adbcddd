from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pandas as pd

from structure_browser.core.models import CDR3SearchResult, Cluster, Epitope

logger = logging.getLogger(__name__)

CLUSTER_COLUMNS = ["cluster_id", "size", "length", "vsegm", "jsegm", "image_url"]
META_COLUMNS = [
    "species",
    "gene",
    "mhc.class",
    "mhc.a",
    "mhc.b",
    "antigen.epitope",
    "antigen.gene",
    "antigen.species",
    "cell.subset",
    "structure.id",
]


def _cluster_row(cluster: Cluster) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "cluster_id": cluster.cluster_id,
        "size": cluster.size,
        "length": cluster.length,
        "vsegm": cluster.vsegm,
        "jsegm": cluster.jsegm,
        "image_url": cluster.image_url,
    }
    meta = cluster.meta.to_dict()
    for col in META_COLUMNS:
        row[col] = meta.get(col)
    return row


def epitopes_to_frame(epitopes: Sequence[Epitope]) -> pd.DataFrame:
    """
    Flatten loaded epitopes into one row per cluster, in display order.
    """
    rows: List[Dict[str, Any]] = []
    for epitope in epitopes:
        for cluster in epitope.clusters:
            rows.append({"epitope": epitope.epitope, "hash": epitope.hash, **_cluster_row(cluster)})
    return pd.DataFrame(rows, columns=["epitope", "hash", *CLUSTER_COLUMNS, *META_COLUMNS])


def search_result_to_frame(result: CDR3SearchResult, normalized: bool = False) -> pd.DataFrame:
    """
    One row per CDR3 hit, in ranked order. `normalized` picks the size-normalised list.
    """
    rows = [
        {"info": entry.info, "cdr3": entry.cdr3, **_cluster_row(entry.cluster)}
        for entry in result.entries(normalized)
    ]
    return pd.DataFrame(rows, columns=["info", "cdr3", *CLUSTER_COLUMNS, *META_COLUMNS])


def write_tsv(frame: pd.DataFrame, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, sep="\t", index=False)
    logger.info("Wrote table", extra={"path": str(path), "n_rows": len(frame)})
    return path
