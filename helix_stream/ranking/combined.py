"""Combined literature and clinical ranking of grouped results.

Publications are grouped by the genes they mention. Each group is scored by
its best publication relevance, blended with the gene's clinical priority
from phenotype matching when one is known, so clinically relevant genes rank
above unlikely ones with similar literature support.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence

from helix_stream.models.entities import EvidenceStrength, GeneAggregate, PublicationResult
from helix_stream.models.schemas import ClinicalPriority, RankedGroup

logger = logging.getLogger(__name__)

# Blend weights for groups with clinical data. Groups without clinical data
# are scored on literature relevance alone.
LITERATURE_WEIGHT = 0.4
CLINICAL_WEIGHT = 0.6

# Combined scores are rounded so float noise cannot reorder equal scores
SCORE_PRECISION = 9


def count_by_strength(items: Iterable[PublicationResult]) -> dict[str, int]:
    """Count publications per evidence strength bucket.

    Every bucket is present in the result, with zero when unused.
    """
    counts = {strength.value: 0 for strength in EvidenceStrength}
    for item in items:
        counts[item.evidence.evidence_strength.value] += 1
    return counts


def combined_score(literature: float, clinical: ClinicalPriority | None) -> float:
    """Blend a literature score (0-1) with a clinical priority (0-100)."""
    if clinical is None:
        return round(literature, SCORE_PRECISION)
    score = literature * LITERATURE_WEIGHT + (clinical.score / 100) * CLINICAL_WEIGHT
    return round(score, SCORE_PRECISION)


class CombinedRanker:
    """Groups publications by gene and orders the groups by combined score.

    Ties on combined score are broken by gene symbol, so identical input
    always yields identical output order.
    """

    def rank(
        self,
        items: Sequence[PublicationResult],
        clinical_by_key: Mapping[str, ClinicalPriority] | None = None,
    ) -> list[RankedGroup]:
        """Rank publications grouped by the genes they mention.

        Args:
            items: Scored publications. A publication mentioning several
                genes belongs to every one of their groups.
            clinical_by_key: Clinical priority per gene symbol.

        Returns:
            Ranked groups, highest combined score first.
        """
        clinical_by_key = clinical_by_key or {}
        grouped: dict[str, list[PublicationResult]] = {}
        for item in items:
            # A gene mentioned twice in one publication counts once
            for key in dict.fromkeys(item.evidence.gene_mentions):
                grouped.setdefault(key, []).append(item)

        groups = [
            self._build_group(key, members, clinical_by_key.get(key))
            for key, members in grouped.items()
        ]
        groups.sort(key=lambda g: (-g.combined_score, g.group_key))
        logger.debug(f"Ranked {len(items)} publications into {len(groups)} gene groups")
        return groups

    def _build_group(
        self,
        key: str,
        members: list[PublicationResult],
        clinical: ClinicalPriority | None,
    ) -> RankedGroup:
        best = max(item.relevance_score for item in members)
        return RankedGroup(
            group_key=key,
            items=tuple(sorted(members, key=lambda item: item.relevance_score, reverse=True)),
            literature_score=best,
            clinical_score=clinical.score / 100 if clinical else None,
            clinical_tier=clinical.tier if clinical else None,
            clinical_rank=clinical.rank if clinical else None,
            combined_score=combined_score(best, clinical),
            strength_counts=count_by_strength(members),
        )


def rank_gene_aggregates(genes: Iterable[GeneAggregate]) -> list[GeneAggregate]:
    """Order genes by best clinical score and assign 1-based ranks.

    Equal scores keep their feed order.
    """
    ordered = sorted(genes, key=lambda gene: gene.best_clinical_score, reverse=True)
    return [gene.model_copy(update={"rank": idx}) for idx, gene in enumerate(ordered, start=1)]


def clinical_map_from_genes(genes: Iterable[GeneAggregate]) -> dict[str, ClinicalPriority]:
    """Build the ranker's clinical priority map from phenotype results."""
    return {
        gene.gene_symbol: ClinicalPriority(
            score=gene.best_clinical_score, tier=gene.best_tier, rank=gene.rank
        )
        for gene in genes
    }
