#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Main entry point for the taskpilot CLI."""

import argparse
import json
import sys
from typing import List, Optional

from taskpilot import config
from taskpilot.debug_logger import DebugLogger
from taskpilot.event_store import create_event_store
from taskpilot.execution.orchestrator import Orchestrator, OrchestratorConfig, OrchestratorResult
from taskpilot.llm.planner import LLMPlanner
from taskpilot.llm.provider_factory import get_provider, list_available_providers
from taskpilot.models.context import EditorContext
from taskpilot.tools.registry import build_default_registry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskpilot",
        description="taskpilot - plan, execute, reflect and replan a coding request",
    )
    parser.add_argument(
        "request",
        nargs="*",
        help="Natural-language request to orchestrate"
    )
    parser.add_argument(
        "--file",
        metavar="PATH",
        help="File currently open in the editor (read as editor context)"
    )
    parser.add_argument(
        "--selection",
        help="Selected text in the editor"
    )
    parser.add_argument(
        "--provider",
        choices=list_available_providers(),
        default=config.LLM_PROVIDER,
        help=f"LLM provider (default: {config.LLM_PROVIDER})"
    )
    parser.add_argument(
        "--model",
        help="Model name for the selected provider"
    )
    parser.add_argument(
        "--max-replanning",
        type=int,
        default=config.MAX_REPLANNING,
        metavar="N",
        help=f"Maximum number of replanning attempts (default: {config.MAX_REPLANNING})"
    )
    parser.add_argument(
        "--no-validation",
        action="store_true",
        help="Accept generated plans without asking the planner to review them"
    )
    parser.add_argument(
        "--no-replanning",
        action="store_true",
        help="Never replan after a failed execution"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable detailed debug logging to file"
    )
    parser.add_argument(
        "--events",
        type=int,
        metavar="N",
        help="Print the last N stored events and exit"
    )
    parser.add_argument(
        "-v",
        "--version",
        action="store_true",
        help="Show taskpilot version information and exit",
    )
    return parser


def print_summary(result: OrchestratorResult) -> None:
    if result.error:
        print(f"✗ Orchestration failed: {result.error}")
        return

    for index, step_result in enumerate(result.results, start=1):
        marker = "✓" if step_result.success else "✗"
        retry = " (retry)" if step_result.was_retry else ""
        print(f"  {marker} {index}. [{step_result.step.tool}] {step_result.step.description}{retry}")
        if step_result.error:
            print(f"      {step_result.error}")

    if result.reflection:
        print()
        print(result.reflection.text)
        for recommendation in result.reflection.recommendations:
            print(f"  [i] {recommendation}")
    if result.replan_count:
        print(f"Replanning attempts: {result.replan_count}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    debug_logger = DebugLogger.initialize(enabled=args.debug)
    if args.debug:
        print(f"Debug logging enabled: {debug_logger.log_file_path}")

    config.LLM_PROVIDER = args.provider
    if args.model:
        config.set_model(args.model)

    try:
        if args.version:
            from taskpilot.versioning import build_version_output

            print(build_version_output(config.LLM_PROVIDER, config.active_model()))
            return 0

        event_store = create_event_store()

        if args.events is not None:
            for event in event_store.get_events(limit=max(args.events, 0)):
                print(json.dumps(event, default=str, ensure_ascii=False))
            return 0

        request = " ".join(args.request).strip()
        if not request:
            parser.print_usage(sys.stderr)
            print("taskpilot: error: a request is required", file=sys.stderr)
            return 1

        context = EditorContext.from_file(args.file, args.selection) if args.file else EditorContext(selection=args.selection)

        debug_logger.log("main", "CONFIGURATION", {
            "provider": config.LLM_PROVIDER,
            "model": config.active_model(),
            "max_replanning": args.max_replanning,
            "validation": not args.no_validation,
            "replanning": not args.no_replanning,
        })

        orchestrator = Orchestrator(
            LLMPlanner(get_provider(config.LLM_PROVIDER)),
            registry=build_default_registry(event_store),
            event_store=event_store,
            config=OrchestratorConfig(
                max_replanning=args.max_replanning,
                intelligent_validation=not args.no_validation,
                auto_replanning=not args.no_replanning,
            ),
        )
        result = orchestrator.orchestrate(request, context)

        if args.json:
            print(json.dumps(result.to_dict(), indent=2, default=str, ensure_ascii=False))
        else:
            print_summary(result)
        return 0 if result.success else 1

    except KeyboardInterrupt:
        debug_logger.log("main", "USER_INTERRUPT", {}, "WARNING")
        print("\n\nAborted by user")
        return 1
    finally:
        debug_logger.close()


if __name__ == "__main__":
    sys.exit(main())
