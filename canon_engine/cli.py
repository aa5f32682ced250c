"""
canon_engine/cli.py -- Command-line entry point.

Two subcommands expose the engine to scripts and to manual checks:

    canon-engine extract [FILES...]
        Read planning-chat messages (one per file, or a single message from
        stdin) and print the proposed canon as JSON.

    canon-engine impact OLD.json NEW.json --chapters N
        Diff two snapshots of one canon entry and print the impact report,
        or the bare changes when no issue fires.

Invalid snapshots and settings are reported on stderr with exit code 2.

Usage::

    python -m canon_engine extract chat.txt
    python -m canon_engine impact before.json after.json --chapters 12
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from canon_engine.change_detector import detect_changes
from canon_engine.config import EngineSettings, load_settings
from canon_engine.errors import CanonEngineError
from canon_engine.extraction import extract_canon_from_conversation
from canon_engine.impact_reporter import build_impact_report
from canon_engine.issue_generator import RuleBasedIssueGenerator
from canon_engine.models.entries import parse_snapshot
from canon_engine.models.validation import ChapterRef

logger = logging.getLogger("canon_engine.cli")

EXIT_OK = 0
EXIT_INVALID_INPUT = 2


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _read_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return fh.read()
    except UnicodeDecodeError as exc:
        raise CanonEngineError(f"{path} is not valid UTF-8: {exc}") from exc


def _read_json(path: str) -> dict:
    try:
        data = json.loads(_read_text(path))
    except json.JSONDecodeError as exc:
        raise CanonEngineError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise CanonEngineError(f"{path} must contain a JSON object.")
    return data


def _emit(payload) -> None:
    json.dump(payload, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def _cmd_extract(args: argparse.Namespace, settings: EngineSettings) -> int:
    if args.files:
        messages = [_read_text(path) for path in args.files]
    else:
        try:
            messages = [sys.stdin.read()]
        except UnicodeDecodeError as exc:
            raise CanonEngineError(f"stdin is not valid UTF-8: {exc}") from exc
    canon = extract_canon_from_conversation(messages, settings=settings)
    _emit(canon.to_dict())
    return EXIT_OK


def _cmd_impact(args: argparse.Namespace, settings: EngineSettings) -> int:
    old = parse_snapshot(_read_json(args.old))
    new = parse_snapshot(_read_json(args.new))
    changes = detect_changes(old, new)

    generator = RuleBasedIssueGenerator(settings=settings)
    issues = generator.generate(new, changes, args.chapters)
    if not issues:
        _emit({"changes": [c.to_dict() for c in changes], "issues": []})
        return EXIT_OK

    chapters = [ChapterRef(number=n) for n in range(1, args.chapters + 1)]
    report = build_impact_report(new, changes, issues, chapters=chapters)
    _emit(report.to_dict())
    return EXIT_OK


def _non_negative(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="canon-engine",
        description="Canon continuity checks and entity extraction for story bibles.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--config", metavar="PATH", help="Settings JSON file.")
    sub = parser.add_subparsers(dest="command", required=True)

    extract = sub.add_parser("extract", help="Propose canon entries from chat messages.")
    extract.add_argument("files", nargs="*", help="Message files; stdin when omitted.")
    extract.set_defaults(handler=_cmd_extract)

    impact = sub.add_parser("impact", help="Report the impact of editing a canon entry.")
    impact.add_argument("old", help="Snapshot before the edit (JSON).")
    impact.add_argument("new", help="Snapshot after the edit (JSON).")
    impact.add_argument(
        "--chapters", type=_non_negative, default=0,
        help="Number of chapters written so far.",
    )
    impact.set_defaults(handler=_cmd_impact)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI and return its exit code."""
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
        return args.handler(args, settings)
    except (CanonEngineError, OSError) as exc:
        logger.warning("Rejected input: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT


if __name__ == "__main__":
    sys.exit(main())
