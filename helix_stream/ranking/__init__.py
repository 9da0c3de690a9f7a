"""Ranking of grouped literature results against clinical priority."""

from helix_stream.ranking.combined import (
    CLINICAL_WEIGHT,
    LITERATURE_WEIGHT,
    CombinedRanker,
    clinical_map_from_genes,
    combined_score,
    count_by_strength,
    rank_gene_aggregates,
)
from helix_stream.ranking.summary import summarize_for_ai

__all__ = [
    "CLINICAL_WEIGHT",
    "LITERATURE_WEIGHT",
    "CombinedRanker",
    "clinical_map_from_genes",
    "combined_score",
    "count_by_strength",
    "rank_gene_aggregates",
    "summarize_for_ai",
]
