"""Command-line entry point.

Loads one analysis session's phenotype and literature results from the
configured services and prints the ranked gene view. Environment variables
are loaded from .env file.
"""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="helix-stream",
        description="Load a session's streamed results and print the ranked genes.",
    )
    parser.add_argument("session_id", help="Analysis session identifier")
    parser.add_argument(
        "hpo_ids",
        nargs="*",
        help="Patient HPO term ids. When given, phenotype matching is re-run first.",
    )
    parser.add_argument("--top", type=int, default=10, help="Number of ranked genes to print")
    return parser.parse_args(argv)


async def run(session_id: str, hpo_ids: list[str], top: int) -> int:
    """Load a session and print its ranked results.

    Returns:
        Process exit code.
    """
    from helix_stream.client import HelixClient
    from helix_stream.errors import HelixStreamError
    from helix_stream.models.schemas import HPOTerm, StoreState
    from helix_stream.workspace import AnalysisWorkspace

    def report(state: StoreState) -> None:
        logger.info(
            f"[{state.domain}] {state.status.value} "
            f"{state.snapshot.load_progress_percent}% ({len(state.snapshot.items)} items)"
        )

    async with HelixClient() as client:
        workspace = AnalysisWorkspace(
            client, on_phenotype_change=report, on_literature_change=report
        )
        workspace.set_session(session_id)
        try:
            if hpo_ids:
                terms = [HPOTerm(hpo_id=hpo_id) for hpo_id in hpo_ids]
                await workspace.run_compute(session_id, terms)
            else:
                await workspace.load_all(session_id)
        except HelixStreamError as e:
            logger.error(f"Failed to load session {session_id}: {e}")
            return 1

        groups = workspace.get_ranked()
        if not groups:
            print(f"No ranked literature for session {session_id}")
            return 0
        for idx, group in enumerate(groups[:top], start=1):
            tier = f" [{group.clinical_tier}]" if group.clinical_tier else ""
            print(
                f"{idx:>3}. {group.group_key}{tier}  combined={group.combined_score:.2f}  "
                f"literature={group.literature_score:.2f}  publications={len(group.items)}"
            )
    return 0


def main() -> None:
    """Application entry point."""
    args = parse_args()
    logger.info(f"Loading session {args.session_id}")
    sys.exit(asyncio.run(run(args.session_id, args.hpo_ids, args.top)))


if __name__ == "__main__":
    main()
