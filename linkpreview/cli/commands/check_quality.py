"""CLI command module reporting whether a URL's preview metadata is weak."""

from __future__ import annotations

import argparse
import json

from linkpreview.errors import InvalidUrlError
from linkpreview.utils.metadata_quality import weakness_reasons
from linkpreview.utils.url_normalizer import normalize_url

from .extract_url import add_extraction_options, build_extractor


def add_check_quality_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "check-quality", help="Extract a URL and explain any weak metadata"
    )
    parser.add_argument("url", type=str, help="URL to check")
    parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        default=False,
        help="Print the report as JSON",
    )
    add_extraction_options(parser)
    parser.set_defaults(func=handle_check_quality_command)
    return parser


def handle_check_quality_command(args: argparse.Namespace) -> int:
    """Exit status 0 when the metadata is acceptable, 2 when it is weak."""
    try:
        normalize_url(args.url)
    except InvalidUrlError as e:
        print(f"Invalid URL: {e}")
        return 1

    result = build_extractor(args).extract(args.url)
    reasons = weakness_reasons(result.metadata)

    if args.as_json:
        report = result.to_dict()
        report["reasons"] = reasons
        print(json.dumps(report, indent=2))
    elif reasons:
        print(f"WEAK metadata for {result.attempt.target_url}:")
        for reason in reasons:
            print(f"  - {reason}")
    else:
        print(f"OK: metadata for {result.attempt.target_url} looks specific")
    return 2 if reasons else 0
