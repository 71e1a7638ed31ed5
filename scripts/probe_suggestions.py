"""Run a draft through the suggestion pipeline against a live retrieval daemon.

Usage:
    1. Start the retrieval daemon (CTX_DAEMON_BASE_URL / CTX_DAEMON_AUTH_TOKEN)
    2. Probe:  python scripts/probe_suggestions.py "Summarize the Q3 budget spreadsheet"
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from context_engine.config.settings import Settings
from context_engine.generation.factory import create_chat_client
from context_engine.observability.logger import setup_logging
from context_engine.pipeline.controller import PipelineController
from context_engine.retrieval.daemon_client import RetrievalDaemonClient


def print_header(title: str) -> None:
    print(f"\n{'=' * 64}")
    print(f"  {title}")
    print(f"{'=' * 64}")


def print_suggestions(controller: PipelineController) -> None:
    if not controller.suggestions:
        print(f"  (none){'  error: ' + controller.last_error if controller.last_error else ''}")
        return
    for i, s in enumerate(controller.suggestions, 1):
        print(f"  {i:>2}. {s.relevance_score:.3f}  [{s.source_type:<8}] {s.title}")
        print(f"      {s.source_path_or_handle}")


async def probe(draft: str, no_llm: bool) -> None:
    settings = Settings(debounce_s=0.0)
    daemon = RetrievalDaemonClient.from_settings(settings)
    chat_client = None if no_llm else create_chat_client(settings)
    controller = PipelineController.create(daemon, chat_client, settings, session_id="probe")
    try:
        controller.update_draft(draft)
        await controller.settle()
        print_header(f"FINAL SUGGESTIONS ({controller.phase.value})")
        print_suggestions(controller)
    finally:
        controller.close()
        await daemon.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Probe context suggestions for a draft")
    parser.add_argument("draft", help="Task draft text")
    parser.add_argument("--no-llm", action="store_true", help="Skip the LLM relevance gate")
    parser.add_argument("--verbose", action="store_true", help="Print pipeline logs")
    args = parser.parse_args()

    setup_logging("DEBUG" if args.verbose else "WARNING", json_output=False)
    asyncio.run(probe(args.draft, args.no_llm))


if __name__ == "__main__":
    main()
