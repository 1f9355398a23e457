#!/usr/bin/env python3
"""
Temporal Intelligence Command Line Interface

Main entry point for the `til` command.

Usage:
    til extract "I'll send the report by Friday"      # Show extracted commitments
    til classify "From: bob@example.com ..."          # Show the detected source type
    til evaluate alice                                # Interrupt decisions for a user
    til digest alice                                  # Generate today's morning digest
    til learn                                         # Run the daily learning pass
    til learn --stats                                 # Learning loop counters
    til config                                        # Show the active configuration
    til serve --port 8090                             # Start the HTTP API
"""

import argparse
import json
import sys
from datetime import datetime

from dotenv import load_dotenv

from temporal_intel import __version__
from temporal_intel.logging_config import setup_logging
from temporal_intel.models import local_naive


def _now(args) -> datetime:
    if getattr(args, "now", None):
        return local_naive(datetime.fromisoformat(args.now))
    return datetime.now()


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _read_content(args) -> str:
    if args.text == "-":
        return sys.stdin.read()
    return args.text


def cmd_extract(args):
    """Handle extract subcommand."""
    from temporal_intel.extraction.extractor import extract_commitments
    from temporal_intel.extraction.validator import validate_commitments
    from temporal_intel.inference.dependencies import format_dependency_chain, infer_dependencies
    from temporal_intel.models import CommitmentSource, SourceType

    now = _now(args)
    source = CommitmentSource(type=SourceType(args.source_type), source_id="cli", extracted_at=now)
    commitments = extract_commitments(_read_content(args), source, now=now)
    validations = validate_commitments(commitments)

    if args.json:
        _print([
            {**c.to_dict(), "validation": validations[c.id].to_dict()} for c in commitments
        ])
        return

    if not commitments:
        print("No commitments found.")
        return 1

    for c in commitments:
        v = validations[c.id]
        when = c.when.parsed_date.date().isoformat() if c.when.parsed_date else c.when.urgency_category.value
        print(f"- {c.what} (who: {c.who}, when: {when}, confidence: {c.confidence:.2f})")
        print(f"  {v.time_reference.value}, actionable: {v.is_actionable}")
        if args.dependencies:
            for line in format_dependency_chain(infer_dependencies(c, now)).splitlines()[1:]:
                print(f"  {line}")


def cmd_classify(args):
    """Handle classify subcommand."""
    from temporal_intel.extraction.classifier import classify_input

    _print(classify_input(_read_content(args)).to_dict())


def cmd_evaluate(args):
    """Handle evaluate subcommand."""
    from temporal_intel.scoring.priority import format_priority_breakdown
    from temporal_intel.service import TemporalEngine

    engine = TemporalEngine()
    now = _now(args)
    decisions = engine.evaluate(args.user_id, now=now, in_focus_session=args.focus)

    if args.json:
        _print([d.to_dict() for d in decisions])
        return

    scores = {c.id: (c, s) for c, s in engine.score(args.user_id, now)}
    for decision in decisions:
        print(f"{decision.action.value:<22} {decision.reason}")
        for cid in decision.commitment_id.split(","):
            if cid in scores:
                commitment, score = scores[cid]
                print(f"    {commitment.what}  {format_priority_breakdown(score)}")


def cmd_digest(args):
    """Handle digest subcommand."""
    from temporal_intel.service import TemporalEngine

    engine = TemporalEngine()
    now = _now(args)
    if args.evening:
        digest = engine.evening_review(args.user_id, now)
        if digest is None:
            print("No evening review to send right now.")
            return
    else:
        digest = engine.morning_digest(args.user_id, now)
        if digest is None:
            print("Morning digest is not due yet.")
            return

    if args.json:
        _print(digest.to_dict())
        return

    print(digest.summary)
    for item in digest.items:
        print(f"  [{item.priority_score * 100:.0f}%] {item.commitment.what} -> {item.suggested_action}")


def cmd_learn(args):
    """Handle learn subcommand."""
    from temporal_intel.service import TemporalEngine

    engine = TemporalEngine()
    if args.stats:
        _print(engine.learning_stats(_now(args)))
        return 0

    result = engine.run_learning(args.user or None, _now(args))
    _print(result.to_dict())
    return 0 if result.success else 1


def cmd_config(args):
    """Handle config subcommand."""
    import yaml

    from temporal_intel.config_models import get_global_config

    print(yaml.safe_dump({"temporal": get_global_config().model_dump()}, sort_keys=False))


def cmd_serve(args):
    """Handle serve subcommand."""
    import uvicorn

    print(f"Starting Temporal Intelligence API at http://{args.host}:{args.port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "temporal_intel.api:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


def main():
    """Main CLI entry point."""
    load_dotenv()
    setup_logging()

    parser = argparse.ArgumentParser(
        prog="til",
        description="Temporal Intelligence - commitment extraction and interrupt budgeting",
    )
    parser.add_argument(
        "--version", "-V", action="store_true", help="Show version and exit"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Extract subcommand
    extract_parser = subparsers.add_parser("extract", help="Extract commitments from text")
    extract_parser.add_argument("text", help="Text to analyse ('-' reads stdin)")
    extract_parser.add_argument(
        "--source-type", default="manual", help="Source type recorded on commitments"
    )
    extract_parser.add_argument(
        "--dependencies", action="store_true", help="Show inferred dependencies"
    )
    extract_parser.add_argument("--now", help="Evaluation instant (ISO format)")
    extract_parser.add_argument("--json", action="store_true", help="Output JSON")
    extract_parser.set_defaults(func=cmd_extract)

    # Classify subcommand
    classify_parser = subparsers.add_parser("classify", help="Detect the source type of text")
    classify_parser.add_argument("text", help="Text to classify ('-' reads stdin)")
    classify_parser.set_defaults(func=cmd_classify)

    # Evaluate subcommand
    evaluate_parser = subparsers.add_parser(
        "evaluate", help="Score a user's commitments and decide interrupts"
    )
    evaluate_parser.add_argument("user_id", help="User to evaluate")
    evaluate_parser.add_argument(
        "--focus", action="store_true", help="Treat the user as in a focus session"
    )
    evaluate_parser.add_argument("--now", help="Evaluation instant (ISO format)")
    evaluate_parser.add_argument("--json", action="store_true", help="Output JSON")
    evaluate_parser.set_defaults(func=cmd_evaluate)

    # Digest subcommand
    digest_parser = subparsers.add_parser("digest", help="Generate the morning digest")
    digest_parser.add_argument("user_id", help="User to build the digest for")
    digest_parser.add_argument(
        "--evening", action="store_true", help="Generate the evening review instead"
    )
    digest_parser.add_argument("--now", help="Evaluation instant (ISO format)")
    digest_parser.add_argument("--json", action="store_true", help="Output JSON")
    digest_parser.set_defaults(func=cmd_digest)

    # Learn subcommand
    learn_parser = subparsers.add_parser("learn", help="Run the daily learning pass")
    learn_parser.add_argument(
        "--user", action="append", help="Limit to this user (repeatable)"
    )
    learn_parser.add_argument("--now", help="Evaluation instant (ISO format)")
    learn_parser.add_argument(
        "--stats", action="store_true", help="Show learning statistics instead of running"
    )
    learn_parser.set_defaults(func=cmd_learn)

    # Config subcommand
    config_parser = subparsers.add_parser("config", help="Show the active configuration")
    config_parser.set_defaults(func=cmd_config)

    # Serve subcommand
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", type=int, default=8090, help="Port to bind to (default: 8090)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    # Handle --version at top level
    if args.version:
        print(f"Temporal Intelligence version {__version__}")
        return

    # If no command given, show help
    if not args.command:
        parser.print_help()
        return

    # Execute command
    result = args.func(args)

    # Commands may return an exit code
    if isinstance(result, int) and result != 0:
        sys.exit(result)


if __name__ == "__main__":
    main()
