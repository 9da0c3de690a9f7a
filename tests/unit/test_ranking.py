"""Unit tests for combined ranking and the AI summary."""

import pytest
import pytest_check as check

from helix_stream.models import (
    ClinicalPriority,
    EvidenceStrength,
    GeneAggregate,
    HPOTerm,
    LiteratureEvidence,
    PublicationResult,
)
from helix_stream.ranking import (
    CombinedRanker,
    clinical_map_from_genes,
    count_by_strength,
    rank_gene_aggregates,
    summarize_for_ai,
)


def publication(
    pmid: str,
    genes: tuple[str, ...],
    relevance: float,
    strength: EvidenceStrength = EvidenceStrength.MODERATE,
) -> PublicationResult:
    return PublicationResult(
        pmid=pmid,
        relevance_score=relevance,
        evidence=LiteratureEvidence(gene_mentions=genes, evidence_strength=strength),
    )


class TestCombinedRanker:
    """Tests for grouping and combined scoring."""

    def test_clinical_blend_and_literature_only(self) -> None:
        """G2 on literature alone (0.95) outranks G1 blended (0.86)."""
        items = [
            publication("1", ("G1",), 0.8),
            publication("2", ("G2",), 0.95),
        ]
        clinical = {"G1": ClinicalPriority(score=90, tier="TIER_1", rank=1)}

        groups = CombinedRanker().rank(items, clinical)

        check.equal([g.group_key for g in groups], ["G2", "G1"])
        check.equal(groups[0].combined_score, 0.95)
        check.equal(groups[1].combined_score, pytest.approx(0.86))
        check.equal(groups[1].clinical_score, 0.9)
        check.equal(groups[1].clinical_tier, "TIER_1")
        check.equal(groups[1].clinical_rank, 1)
        check.is_none(groups[0].clinical_score)

    def test_publication_joins_every_mentioned_gene(self) -> None:
        """A publication mentioning two genes appears in both groups once."""
        items = [
            publication("1", ("A", "B", "A"), 0.7),
            publication("2", ("A",), 0.9),
        ]

        groups = {g.group_key: g for g in CombinedRanker().rank(items)}

        check.equal([p.pmid for p in groups["A"].items], ["2", "1"])
        check.equal([p.pmid for p in groups["B"].items], ["1"])
        check.equal(groups["A"].literature_score, 0.9)

    def test_ties_break_by_group_key(self) -> None:
        """Equal combined scores order by gene symbol on every run."""
        items = [
            publication("1", ("ZEB2",), 0.5),
            publication("2", ("ARX",), 0.5),
            publication("3", ("MECP2",), 0.5),
        ]
        ranker = CombinedRanker()

        first = [g.group_key for g in ranker.rank(items)]
        second = [g.group_key for g in ranker.rank(list(reversed(items)))]

        check.equal(first, ["ARX", "MECP2", "ZEB2"])
        check.equal(second, first)

    def test_float_noise_does_not_break_ties(self) -> None:
        """Blends equal up to float error still tie-break by key."""
        items = [publication("1", ("B",), 0.3), publication("2", ("A",), 0.1)]
        clinical = {
            "B": ClinicalPriority(score=70),
            "A": ClinicalPriority(score=83.33333333333333),
        }

        groups = CombinedRanker().rank(items, clinical)

        assert [g.group_key for g in groups] == ["A", "B"]

    def test_strength_counts_per_group(self) -> None:
        """Each group counts its publications per evidence strength."""
        items = [
            publication("1", ("A",), 0.9, EvidenceStrength.STRONG),
            publication("2", ("A",), 0.5, EvidenceStrength.STRONG),
            publication("3", ("A",), 0.2, EvidenceStrength.WEAK),
        ]

        group = CombinedRanker().rank(items)[0]

        assert group.strength_counts == {"STRONG": 2, "MODERATE": 0, "SUPPORTING": 0, "WEAK": 1}

    def test_empty_input(self) -> None:
        """No publications yield no groups."""
        assert CombinedRanker().rank([]) == []


class TestGeneRanking:
    """Tests for phenotype gene ordering and the clinical map."""

    def test_rank_by_clinical_score(self) -> None:
        """Genes are ranked by best clinical score, ranks starting at 1."""
        genes = [
            GeneAggregate(gene_symbol="LOW", best_clinical_score=10),
            GeneAggregate(gene_symbol="HIGH", best_clinical_score=95, best_tier="TIER_1"),
            GeneAggregate(gene_symbol="MID", best_clinical_score=50),
        ]

        ranked = rank_gene_aggregates(genes)

        check.equal([g.gene_symbol for g in ranked], ["HIGH", "MID", "LOW"])
        check.equal([g.rank for g in ranked], [1, 2, 3])

    def test_clinical_map(self) -> None:
        """The clinical map carries score, tier and rank per gene."""
        genes = rank_gene_aggregates(
            [GeneAggregate(gene_symbol="BRCA1", best_clinical_score=88, best_tier="TIER_1")]
        )

        assert clinical_map_from_genes(genes) == {
            "BRCA1": ClinicalPriority(score=88, tier="TIER_1", rank=1)
        }


class TestSummarizeForAi:
    """Tests for the plain-text literature summary."""

    def test_no_results(self) -> None:
        """An empty ranking says so."""
        assert summarize_for_ai([]) == "No literature search results available."

    def test_lists_top_genes(self) -> None:
        """Top groups appear with tier, scores and evidence counts."""
        items = [
            publication("1", ("G1",), 0.8, EvidenceStrength.STRONG),
            publication("2", ("G2",), 0.95),
        ]
        groups = CombinedRanker().rank(items, {"G1": ClinicalPriority(score=90, tier="TIER_1")})

        summary = summarize_for_ai(
            groups,
            searched_genes=["G1", "G2"],
            hpo_terms=[HPOTerm(hpo_id="HP:0001250", name="Seizure")],
        )

        check.is_in("- Genes searched: G1, G2", summary)
        check.is_in("- Phenotypes: Seizure", summary)
        check.is_in("- Total publications found: 2", summary)
        check.is_in("1 strong, 1 moderate, 0 supporting, 0 weak", summary)
        check.is_in("1. G2\n", summary)
        check.is_in("2. G1 [TIER_1]", summary)
        check.is_in("Combined: 86%, Literature: 80%, Clinical: 90", summary)

    def test_mentions_remaining_genes(self) -> None:
        """Groups beyond the limit are counted, not listed."""
        items = [publication(str(i), (f"G{i}",), 0.5) for i in range(7)]

        summary = summarize_for_ai(CombinedRanker().rank(items), limit=5)

        assert summary.endswith("... and 2 more genes")

    def test_count_by_strength_covers_every_bucket(self) -> None:
        """Unused strength buckets count zero."""
        assert count_by_strength([]) == {"STRONG": 0, "MODERATE": 0, "SUPPORTING": 0, "WEAK": 0}
