"""Analysis workspace: the session-scoped facade over stores, ranking and chat.

Ties the phenotype and literature result stores, the combined ranker and the
chat reader to one active session. Phenotype results feed the literature
search: once a session's phenotype results load, the top genes and the
patient's phenotype terms are searched automatically, unless that exact
search already ran for the session.
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any

from helix_stream.chat.reader import ChatStreamReader, UpdateCallback
from helix_stream.chat.turn import Transcript
from helix_stream.client import HelixClient
from helix_stream.config import ClientConfig
from helix_stream.errors import ConcurrencyError, HelixStreamError
from helix_stream.models.entities import GeneAggregate, PublicationResult
from helix_stream.models.schemas import HPOTerm, RankedGroup, ResultSnapshot, StoreState
from helix_stream.ranking.combined import (
    CombinedRanker,
    clinical_map_from_genes,
    rank_gene_aggregates,
)
from helix_stream.ranking.summary import summarize_for_ai
from helix_stream.sessions.cache import SessionResultCache
from helix_stream.sessions.store import SessionResultStore
from helix_stream.streaming.feeds import GENE_FEED, PUBLICATION_FEED

logger = logging.getLogger(__name__)

StateCallback = Callable[[StoreState], None]


def _genes(snapshot: ResultSnapshot) -> list[GeneAggregate]:
    return [item for item in snapshot.items if isinstance(item, GeneAggregate)]


def _publications(snapshot: ResultSnapshot) -> list[PublicationResult]:
    return [item for item in snapshot.items if isinstance(item, PublicationResult)]


class AnalysisWorkspace:
    """Consumer-facing entry point for one user's analysis sessions.

    Args:
        client: Transport shared by both stores and the chat reader.
        config: Client configuration. Defaults to the client's own.
        on_phenotype_change: Observer for phenotype store state.
        on_literature_change: Observer for literature store state.
        on_chat_update: Observer for chat transcript updates.
    """

    def __init__(
        self,
        client: HelixClient,
        config: ClientConfig | None = None,
        on_phenotype_change: StateCallback | None = None,
        on_literature_change: StateCallback | None = None,
        on_chat_update: UpdateCallback | None = None,
    ) -> None:
        self.config = config or client.config
        self.phenotype = SessionResultStore(
            GENE_FEED.with_batch_size(self.config.gene_batch_size),
            client,
            cache=SessionResultCache(self.config.cache_size),
            on_change=on_phenotype_change,
        )
        self.literature = SessionResultStore(
            PUBLICATION_FEED.with_batch_size(self.config.publication_batch_size),
            client,
            cache=SessionResultCache(self.config.cache_size),
            on_change=on_literature_change,
        )
        self.chat = ChatStreamReader(client, on_update=on_chat_update)
        self.ranker = CombinedRanker()

        self._session_id: str | None = None
        self._hpo_terms: dict[str, list[HPOTerm]] = {}
        self._literature_keys: dict[str, str] = {}
        self._searched_genes: dict[str, list[str]] = {}

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def hpo_terms(self, session_id: str) -> list[HPOTerm]:
        return list(self._hpo_terms.get(session_id, []))

    # ------------------------------------------------------------------
    # Session transitions
    # ------------------------------------------------------------------

    def set_session(self, session_id: str | None) -> None:
        """Make ``session_id`` the active session (None closes it)."""
        self.on_session_changed(self._session_id, session_id)

    def on_session_changed(self, prev: str | None, next_id: str | None) -> None:
        """Propagate one session transition to every component."""
        logger.info(f"Session changed: {prev} -> {next_id}")
        self._session_id = next_id
        self.phenotype.on_session_changed(prev, next_id)
        self.literature.on_session_changed(prev, next_id)
        self.chat.on_session_changed(prev, next_id)

    def clear(self, session_id: str) -> None:
        """Drop everything held for one session. Other sessions are untouched."""
        self.phenotype.clear(session_id)
        self.literature.clear(session_id)
        self.chat.clear(session_id)
        self._hpo_terms.pop(session_id, None)
        self._literature_keys.pop(session_id, None)
        self._searched_genes.pop(session_id, None)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def run_compute(
        self, session_id: str, hpo_terms: Sequence[HPOTerm]
    ) -> ResultSnapshot | None:
        """Match a session's phenotype, load the results, then search literature.

        Args:
            session_id: Session to analyse.
            hpo_terms: Patient phenotype terms.

        Returns:
            The phenotype snapshot, or None when skipped or aborted.

        Raises:
            ConcurrencyError: If a phenotype compute or load is in flight.
            TransportError: If the phenotype request or feed fails.
            ProtocolError: If the phenotype feed reports an error.
        """
        self._hpo_terms[session_id] = list(hpo_terms)
        snapshot = await self.phenotype.run_and_load(session_id, self._phenotype_params(hpo_terms))
        if snapshot is not None:
            await self._search_literature(session_id, snapshot)
        return snapshot

    async def load_all(self, session_id: str) -> ResultSnapshot | None:
        """Load a session's persisted phenotype results, then search literature.

        Returns:
            The phenotype snapshot, or None if the load was aborted.
        """
        snapshot = await self.phenotype.load_all(session_id)
        if snapshot is not None:
            await self._search_literature(session_id, snapshot)
        return snapshot

    async def update_phenotype_terms(
        self, session_id: str, hpo_terms: Sequence[HPOTerm]
    ) -> ResultSnapshot | None:
        """Record new phenotype terms; re-run matching if results were loaded.

        Returns:
            The new phenotype snapshot if matching re-ran, else None.
        """
        self._hpo_terms[session_id] = list(hpo_terms)
        snapshot = await self.phenotype.on_inputs_changed(
            session_id, self._phenotype_params(hpo_terms)
        )
        if snapshot is not None:
            await self._search_literature(session_id, snapshot)
        return snapshot

    def get_ranked(self) -> list[RankedGroup]:
        """Rank the active session's publications against its clinical priorities."""
        clinical = clinical_map_from_genes(rank_gene_aggregates(_genes(self.phenotype.snapshot)))
        return self.ranker.rank(_publications(self.literature.snapshot), clinical)

    def literature_summary(self) -> str:
        """Summary of the active session's ranked literature for chat context."""
        session_id = self._session_id
        if session_id is None:
            return summarize_for_ai([])
        return summarize_for_ai(
            self.get_ranked(),
            searched_genes=self._searched_genes.get(session_id, []),
            hpo_terms=self._hpo_terms.get(session_id, []),
        )

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def send_message(self, text: str, metadata: dict[str, Any] | None = None) -> Transcript:
        """Send a chat message about the active session.

        The patient's phenotype terms are attached as context when known.

        Raises:
            ValueError: If no session is active.
            ConcurrencyError: If a chat turn is already streaming.
        """
        session_id = self._session_id
        if session_id is None:
            raise ValueError("No active session")

        context = dict(metadata or {})
        terms = self._hpo_terms.get(session_id)
        if terms:
            context["phenotype_context"] = {
                "hpo_terms": [term.model_dump() for term in terms],
                "hpo_ids": [term.hpo_id for term in terms],
                "term_count": len(terms),
            }
        return await self.chat.send_message(session_id, text, metadata=context or None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _phenotype_params(hpo_terms: Sequence[HPOTerm]) -> dict[str, Any]:
        return {"patient_hpo_ids": [term.hpo_id for term in hpo_terms]}

    async def _search_literature(
        self, session_id: str, phenotype: ResultSnapshot
    ) -> ResultSnapshot | None:
        genes = rank_gene_aggregates(_genes(phenotype))
        if not genes:
            return None
        terms = self._hpo_terms.get(session_id, [])
        if not terms:
            logger.info(f"No phenotype terms for {session_id}, skipping literature search")
            return None

        top_genes = [gene.gene_symbol for gene in genes[: self.config.literature_gene_limit]]
        key = f"{','.join(top_genes)}_{','.join(term.hpo_id for term in terms)}"
        if self._literature_keys.get(session_id) == key:
            logger.info(f"Literature already searched for {session_id} with these inputs")
            return None

        self._literature_keys[session_id] = key
        self._searched_genes[session_id] = top_genes
        params = {
            "genes": top_genes,
            "patient_hpo_terms": [term.model_dump() for term in terms],
            "variants": [],
            "limit": self.config.literature_result_limit,
            "include_evidence_details": True,
        }
        logger.info(
            f"Searching literature for {session_id}: {len(top_genes)} genes, {len(terms)} terms"
        )
        try:
            return await self.literature.run_and_load(session_id, params)
        except ConcurrencyError:
            # Allow the next phenotype load to retry this search
            self._literature_keys.pop(session_id, None)
            return None
        except HelixStreamError as e:
            # Literature failures stay in the literature store
            logger.error(f"Literature search failed for {session_id}: {e}")
            return None
