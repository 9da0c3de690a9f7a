"""Domain entities carried by the bulk result feeds."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EvidenceStrength(str, Enum):
    """Literature evidence strength buckets."""

    STRONG = "STRONG"
    MODERATE = "MODERATE"
    SUPPORTING = "SUPPORTING"
    WEAK = "WEAK"


class HPOMatch(BaseModel):
    """One patient term matched against a variant's gene phenotypes."""

    patient_hpo_id: str = ""
    patient_hpo_name: str = ""
    matched_hpo_id: str | None = None
    similarity_score: float = 0.0


class VariantMatch(BaseModel):
    """Phenotype match result for a single variant."""

    variant_idx: int | None = None
    gene_symbol: str = "Unknown"
    clinical_priority_score: float = 0.0
    phenotype_match_score: float = 0.0
    clinical_tier: str = ""
    individual_matches: list[HPOMatch] = Field(default_factory=list)


class GeneAggregate(BaseModel):
    """Phenotype matching results aggregated per gene.

    Attributes:
        gene_symbol: HGNC gene symbol.
        rank: 1-based rank by clinical priority (0 when not yet ranked).
        best_clinical_score: Highest variant clinical priority score (0-100).
        best_phenotype_score: Highest variant phenotype similarity score.
        best_tier: Clinical tier of the best-scoring variant.
        variant_count: Number of matched variants in the gene.
        matched_hpo_terms: Patient terms matched by any variant.
        variants: Per-variant match results.
    """

    model_config = ConfigDict(frozen=True)

    gene_symbol: str
    rank: int = 0
    best_clinical_score: float = Field(default=0.0, ge=0.0, le=100.0)
    best_phenotype_score: float = 0.0
    best_tier: str = ""
    variant_count: int = Field(default=0, ge=0)
    matched_hpo_terms: tuple[str, ...] = ()
    variants: tuple[VariantMatch, ...] = ()


class LiteratureEvidence(BaseModel):
    """Evidence extracted from a publication for the searched genes."""

    gene_mentions: tuple[str, ...] = ()
    variant_matches: tuple[str, ...] = ()
    phenotype_matches: tuple[str, ...] = ()
    has_exact_variant: bool = False
    has_functional_data: bool = False
    publication_type: str = ""
    evidence_strength: EvidenceStrength = EvidenceStrength.WEAK


class PublicationResult(BaseModel):
    """A scored publication from the literature feed."""

    model_config = ConfigDict(frozen=True)

    pmid: str
    title: str = ""
    abstract: str = ""
    journal: str | None = None
    publication_date: str | None = None
    authors: str | None = None
    doi: str | None = None
    pmc_id: str | None = None
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    phenotype_score: float = 0.0
    publication_type_score: float = 0.0
    gene_centrality_score: float = 0.0
    functional_data_score: float = 0.0
    variant_score: float = 0.0
    recency_score: float = 0.0
    evidence: LiteratureEvidence = Field(default_factory=LiteratureEvidence)


class UnknownEntity(BaseModel):
    """Entity of a feed type this client does not model yet."""

    model_config = ConfigDict(frozen=True)

    kind: str
    payload: dict[str, Any] = Field(default_factory=dict)


Entity = GeneAggregate | PublicationResult | UnknownEntity
