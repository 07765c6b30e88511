"""CLI command module for extracting preview metadata for a single URL."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging

from linkpreview.crawler import ExtractionResult, MetadataExtractor
from linkpreview.errors import InvalidUrlError
from linkpreview.utils.url_normalizer import normalize_url

from ..context import load_settings

logger = logging.getLogger(__name__)


def add_extract_url_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "extract-url", help="Extract title, description, image and favicon for a URL"
    )
    parser.add_argument("url", type=str, help="URL to extract")
    parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        default=False,
        help="Print the result as JSON",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        default=False,
        help="Include the per-strategy diagnostic trace",
    )
    add_extraction_options(parser)
    parser.set_defaults(func=handle_extract_url_command)
    return parser


def add_extraction_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--max-attempts",
        dest="max_attempts",
        type=int,
        default=None,
        help="Override PREVIEW_MAX_ATTEMPTS",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall time budget in seconds (overrides PREVIEW_TOTAL_TIMEOUT)",
    )


def build_extractor(args: argparse.Namespace) -> MetadataExtractor:
    settings = load_settings()
    overrides = {}
    if getattr(args, "max_attempts", None):
        overrides["max_attempts"] = max(1, args.max_attempts)
    if getattr(args, "timeout", None):
        overrides["total_timeout"] = args.timeout
    if overrides:
        settings = dataclasses.replace(settings, **overrides)
    return MetadataExtractor(settings)


def _print_result(result: ExtractionResult, include_trace: bool) -> None:
    metadata = result.metadata
    print(f"URL:         {result.attempt.target_url}")
    if result.attempt.effective_url and result.attempt.effective_url != result.attempt.target_url:
        print(f"Effective:   {result.attempt.effective_url}")
    print(f"Title:       {metadata.title or '-'}")
    print(f"Description: {metadata.description or '-'}")
    print(f"Image:       {metadata.image or '-'}")
    print(f"Favicon:     {metadata.favicon or '-'}")
    print(f"Weak:        {'yes' if result.is_weak else 'no'}")
    print(f"Attempts:    {result.attempt.attempts_used}")
    if include_trace:
        print("\nStrategy trace:")
        for outcome in result.attempt.strategy_trace:
            status = "ok" if outcome.success else (outcome.error or "failed")
            fields = ",".join(outcome.fields) or "-"
            print(
                f"  #{outcome.attempt} {outcome.strategy:<20} {status:<40} "
                f"fields={fields} ({outcome.duration_ms:.0f}ms)"
            )


def handle_extract_url_command(args: argparse.Namespace) -> int:
    try:
        normalize_url(args.url)
    except InvalidUrlError as e:
        print(f"Invalid URL: {e}")
        return 1

    extractor = build_extractor(args)
    result = extractor.extract(args.url)

    if args.as_json:
        print(json.dumps(result.to_dict(include_trace=args.trace), indent=2))
    else:
        _print_result(result, include_trace=args.trace)
    return 0
