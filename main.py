"""Investigator - autonomous web investigation agent

Simple CLI for running an investigation.
"""

import argparse
import asyncio

from pydantic import ValidationError

from investigator.errors import InvestigationValidationError
from investigator.models.investigation import AgentThought
from investigator.services.investigations import InvestigationService


def print_thought(thought: AgentThought) -> None:
    print(f"[{thought.action}] ({thought.confidence:.2f}) {thought.reasoning}")


async def run_investigation(query: str, config: dict) -> int:
    """Run an investigation on the given query."""
    print(f"Investigation query: {query}")
    print("-" * 50)

    service = InvestigationService()
    try:
        investigation = await service.start(query, config, on_thought=print_thought)
    except (InvestigationValidationError, ValidationError) as e:
        print(f"\n[!] Error: {e}")
        return 2

    print(f"\n[*] Investigation {investigation.status.value}")
    print(f"   Id: {investigation.id}")
    print(f"   Steps: {investigation.step_count}")
    print(f"   Confidence: {investigation.confidence_score:.2f}")
    print(f"   Sources: {len(investigation.sources)}")
    print(f"   Findings: {len(investigation.findings)}")
    print(f"   Leads: {len(investigation.leads)}")
    if investigation.error_message:
        print(f"   Last error: {investigation.error_message}")

    if investigation.sources:
        print(f"\n{'='*50}")
        print("SOURCES:")
        print(f"{'='*50}")
        for i, source in enumerate(investigation.sources, 1):
            print(f"  {i}. {source.title or source.url}")
            print(f"     {source.url}")

    if investigation.leads:
        print("\nLEADS:")
        for lead in investigation.leads[:5]:
            print(f"  - {lead.query}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Investigator CLI")
    parser.add_argument("--query", "-q", required=True, help="Investigation query")
    parser.add_argument("--max-steps", type=int, help="Step budget for the run")
    parser.add_argument("--threshold", type=float, help="Confidence threshold that ends the run")
    parser.add_argument("--no-crawl", action="store_true", help="Skip deep crawling of sources")
    parser.add_argument("--no-memory", action="store_true", help="Disable long-term memory")

    args = parser.parse_args()

    config: dict = {}
    if args.max_steps is not None:
        config["max_steps"] = args.max_steps
    if args.threshold is not None:
        config["confidence_threshold"] = args.threshold
    if args.no_crawl:
        config["enable_deep_crawl"] = False
    if args.no_memory:
        config["memory_enabled"] = False

    raise SystemExit(asyncio.run(run_investigation(args.query, config)))


if __name__ == "__main__":
    main()
