"""Integration tests for the analysis workspace.

Covers the full flow against the FastAPI fake backend: phenotype matching,
the literature search it triggers, combined ranking, session switching and
chat context.
"""

import pytest
import pytest_check as check

from helix_stream.client import HelixClient
from helix_stream.models import HPOTerm, LoadStatus
from helix_stream.workspace import AnalysisWorkspace
from tests.factories import gene_feed, publication_feed, publication_record, sse
from tests.fake_backend import FakeBackend

TERMS = [HPOTerm(hpo_id="HP:0001250", name="Seizure")]


@pytest.fixture
def workspace(helix_client: HelixClient) -> AnalysisWorkspace:
    return AnalysisWorkspace(helix_client)


def script_session(backend: FakeBackend, session: str) -> None:
    """12 genes scored 100 down to 8.33, and three publications."""
    backend.set_feed("phenotype", session, gene_feed(12))
    backend.set_feed(
        "literature",
        session,
        publication_feed(
            [
                publication_record("1", ["GENE1"], relevance=0.9, strength="STRONG"),
                publication_record("2", ["GENE0"], relevance=0.5),
                publication_record("3", ["OTHER"], relevance=0.95),
            ]
        ),
    )


class TestRunCompute:
    """Tests for phenotype matching followed by literature search."""

    async def test_literature_search_uses_top_genes(
        self, workspace: AnalysisWorkspace, backend: FakeBackend, session_id: str
    ) -> None:
        """The top ten genes and the patient terms are searched."""
        script_session(backend, session_id)
        workspace.set_session(session_id)

        snapshot = await workspace.run_compute(session_id, TERMS)

        check.equal(len(snapshot.items), 12)
        check.equal(workspace.phenotype.status, LoadStatus.SUCCESS)
        check.equal(workspace.literature.status, LoadStatus.SUCCESS)
        check.equal(backend.compute_calls[0], ("phenotype", session_id, {"patient_hpo_ids": ["HP:0001250"]}))
        domain, _, body = backend.compute_calls[1]
        check.equal(domain, "literature")
        check.equal(body["genes"], [f"GENE{i}" for i in range(10)])
        check.equal(body["patient_hpo_terms"], [{"hpo_id": "HP:0001250", "name": "Seizure"}])
        check.equal(body["limit"], 50)

    async def test_ranked_view_blends_clinical_priority(
        self, workspace: AnalysisWorkspace, backend: FakeBackend, session_id: str
    ) -> None:
        """Genes rank by literature blended with phenotype clinical scores."""
        script_session(backend, session_id)
        workspace.set_session(session_id)
        await workspace.run_compute(session_id, TERMS)

        groups = workspace.get_ranked()

        check.equal([g.group_key for g in groups], ["OTHER", "GENE1", "GENE0"])
        check.equal(groups[1].clinical_rank, 2)
        check.equal(groups[2].combined_score, pytest.approx(0.8))
        check.is_in("Genes searched: GENE0, GENE1", workspace.literature_summary())

    async def test_same_inputs_do_not_search_again(
        self, workspace: AnalysisWorkspace, backend: FakeBackend, session_id: str
    ) -> None:
        """Reloading phenotype results skips a repeated literature search."""
        script_session(backend, session_id)
        workspace.set_session(session_id)
        await workspace.run_compute(session_id, TERMS)

        await workspace.load_all(session_id)

        check.equal(backend.compute_count("literature"), 1)
        check.equal(backend.feed_count("phenotype"), 2)

    async def test_literature_failure_is_contained(
        self, workspace: AnalysisWorkspace, backend: FakeBackend, session_id: str
    ) -> None:
        """A failed literature search leaves phenotype results intact."""
        script_session(backend, session_id)
        backend.compute_status[("literature", session_id)] = 500
        workspace.set_session(session_id)

        snapshot = await workspace.run_compute(session_id, TERMS)

        check.equal(len(snapshot.items), 12)
        check.equal(workspace.phenotype.status, LoadStatus.SUCCESS)
        check.equal(workspace.literature.status, LoadStatus.ERROR)
        check.equal(workspace.get_ranked(), [])

    async def test_no_terms_is_no_data(
        self, workspace: AnalysisWorkspace, backend: FakeBackend, session_id: str
    ) -> None:
        """Without phenotype terms nothing is requested."""
        workspace.set_session(session_id)

        result = await workspace.run_compute(session_id, [])

        check.is_none(result)
        check.equal(workspace.phenotype.status, LoadStatus.NO_DATA)
        check.equal(backend.compute_calls, [])

    async def test_changed_terms_rerun_both_searches(
        self, workspace: AnalysisWorkspace, backend: FakeBackend, session_id: str
    ) -> None:
        """New terms after a load re-run matching and literature search."""
        script_session(backend, session_id)
        workspace.set_session(session_id)
        await workspace.run_compute(session_id, TERMS)

        new_terms = [*TERMS, HPOTerm(hpo_id="HP:0001263", name="Developmental delay")]
        await workspace.update_phenotype_terms(session_id, new_terms)

        check.equal(backend.compute_count("phenotype"), 2)
        check.equal(backend.compute_count("literature"), 2)
        check.equal(len(backend.compute_calls[-1][2]["patient_hpo_terms"]), 2)


class TestSessions:
    """Tests for switching and clearing sessions."""

    async def test_switch_back_restores_both_domains(
        self, workspace: AnalysisWorkspace, backend: FakeBackend
    ) -> None:
        """Returning to a session restores results without refetching."""
        script_session(backend, "A")
        workspace.set_session("A")
        await workspace.run_compute("A", TERMS)
        ranked = workspace.get_ranked()

        workspace.set_session("B")
        check.equal(workspace.get_ranked(), [])
        workspace.set_session("A")

        check.equal(workspace.get_ranked(), ranked)
        check.equal(backend.feed_count("phenotype"), 1)
        check.equal(backend.feed_count("literature"), 1)

    async def test_clear_keeps_other_sessions(
        self, workspace: AnalysisWorkspace, backend: FakeBackend
    ) -> None:
        """Clearing one session keeps another's cached results."""
        script_session(backend, "A")
        script_session(backend, "B")
        workspace.set_session("A")
        await workspace.run_compute("A", TERMS)
        workspace.set_session("B")
        await workspace.run_compute("B", TERMS)

        workspace.clear("B")

        check.is_true(workspace.phenotype.snapshot.is_empty)
        check.is_in("A", workspace.phenotype.cache)
        check.is_in("A", workspace.literature.cache)
        check.equal(workspace.hpo_terms("A"), TERMS)
        check.equal(workspace.hpo_terms("B"), [])


class TestChat:
    """Tests for chat about the active session."""

    async def test_message_carries_phenotype_context(
        self, workspace: AnalysisWorkspace, backend: FakeBackend, session_id: str
    ) -> None:
        """Known phenotype terms are sent as chat metadata."""
        script_session(backend, session_id)
        backend.add_chat(sse((None, "Noted."), (None, "[DONE]")))
        workspace.set_session(session_id)
        await workspace.run_compute(session_id, TERMS)

        transcript = await workspace.send_message("What stands out?")

        request = backend.chat_requests[0]
        check.equal(request["session_id"], session_id)
        check.equal(request["metadata"]["phenotype_context"]["hpo_ids"], ["HP:0001250"])
        check.equal(request["metadata"]["phenotype_context"]["term_count"], 1)
        check.equal(transcript[-1].content, "Noted.")

    async def test_message_needs_active_session(self, workspace: AnalysisWorkspace) -> None:
        """Chat without a session is refused."""
        with pytest.raises(ValueError, match="No active session"):
            await workspace.send_message("Hello")
