"""
Tabular export of loaded results (pandas DataFrames / TSV files).
"""

from .cluster_table import epitopes_to_frame, search_result_to_frame, write_tsv

__all__ = ["epitopes_to_frame", "search_result_to_frame", "write_tsv"]
