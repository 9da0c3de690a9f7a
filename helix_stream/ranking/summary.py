"""Plain-text summary of ranked literature for AI chat context."""

from collections.abc import Sequence

from helix_stream.models.entities import EvidenceStrength
from helix_stream.models.schemas import HPOTerm, RankedGroup
from helix_stream.ranking.combined import count_by_strength

TOP_GROUPS = 5


def _percent(value: float) -> str:
    return f"{value * 100:.0f}%"


def summarize_for_ai(
    groups: Sequence[RankedGroup],
    searched_genes: Sequence[str] = (),
    hpo_terms: Sequence[HPOTerm] = (),
    limit: int = TOP_GROUPS,
) -> str:
    """Render ranked groups as a short summary the assistant can read.

    Args:
        groups: Ranked groups, highest combined score first.
        searched_genes: Genes the literature search was run for.
        hpo_terms: Patient phenotype terms used in the search.
        limit: Number of top groups listed individually.

    Returns:
        Multi-line summary text.
    """
    publications = {item.pmid: item for group in groups for item in group.items}
    if not publications:
        return "No literature search results available."

    counts = count_by_strength(publications.values())
    lines = [
        "Literature Search Results Summary:",
        f"- Genes searched: {', '.join(searched_genes)}",
        f"- Phenotypes: {', '.join(term.name or term.hpo_id for term in hpo_terms)}",
        f"- Total publications found: {len(publications)}",
        (
            "- Evidence breakdown: "
            f"{counts[EvidenceStrength.STRONG.value]} strong, "
            f"{counts[EvidenceStrength.MODERATE.value]} moderate, "
            f"{counts[EvidenceStrength.SUPPORTING.value]} supporting, "
            f"{counts[EvidenceStrength.WEAK.value]} weak"
        ),
        "",
        "Top genes by combined score (60% clinical priority + 40% literature relevance):",
    ]

    for idx, group in enumerate(groups[:limit], start=1):
        tier = f" [{group.clinical_tier}]" if group.clinical_tier else ""
        clinical = f", Clinical: {group.clinical_score * 100:.0f}" if group.clinical_score else ""
        strong = group.strength_counts.get(EvidenceStrength.STRONG.value, 0)
        moderate = group.strength_counts.get(EvidenceStrength.MODERATE.value, 0)
        lines.append(f"{idx}. {group.group_key}{tier}")
        lines.append(
            f"   - Combined: {_percent(group.combined_score)}, "
            f"Literature: {_percent(group.literature_score)}{clinical}"
        )
        lines.append(f"   - Publications: {len(group.items)} ({strong} strong, {moderate} moderate)")

    if len(groups) > limit:
        lines.append("")
        lines.append(f"... and {len(groups) - limit} more genes")

    return "\n".join(lines)
