"""CLI command modules for the persistent link database."""

from __future__ import annotations

import argparse
import json
import logging

from sqlalchemy.exc import IntegrityError

from linkpreview.errors import InvalidUrlError
from linkpreview.services.preview_service import PreviewService

from ..context import load_settings, open_database_store

logger = logging.getLogger(__name__)


def _add_database_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--database-url",
        dest="database_url",
        default=None,
        help="SQLAlchemy database URL (defaults to DATABASE_URL)",
    )


def add_add_link_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    parser = subparsers.add_parser("add-link", help="Register a short code for a URL")
    parser.add_argument("short_code", type=str, help="Short code to register")
    parser.add_argument("url", type=str, help="Target URL")
    parser.add_argument(
        "--no-extract",
        dest="extract",
        action="store_false",
        default=True,
        help="Store the link without fetching preview metadata",
    )
    _add_database_option(parser)
    parser.set_defaults(func=handle_add_link_command)
    return parser


def add_refresh_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "refresh", help="Force re-extraction of a stored short code"
    )
    parser.add_argument("short_code", type=str, help="Short code to refresh")
    _add_database_option(parser)
    parser.set_defaults(func=handle_refresh_command)
    return parser


def _open_service(args: argparse.Namespace) -> PreviewService | None:
    store = open_database_store(args.database_url)
    if store is None:
        print("No database configured: pass --database-url or set DATABASE_URL")
        return None
    return PreviewService(store, settings=load_settings())


def handle_add_link_command(args: argparse.Namespace) -> int:
    service = _open_service(args)
    if service is None:
        return 1
    try:
        try:
            existing_code = service.store.lookup_by_url(args.url)
            existing = service.store.get(existing_code) if existing_code else None
            if existing is not None:
                print(f"URL already registered as {existing_code}")
                print(json.dumps(existing.to_dict(), indent=2))
                return 0
            record = service.store.add(args.short_code, args.url)
        except InvalidUrlError as e:
            print(f"Invalid URL: {e}")
            return 1
        except IntegrityError:
            print(f"Short code already registered: {args.short_code}")
            return 1
        if args.extract:
            record = service.refresh(args.short_code) or record
        print(json.dumps(record.to_dict(), indent=2))
        return 0
    finally:
        service.close()


def handle_refresh_command(args: argparse.Namespace) -> int:
    service = _open_service(args)
    if service is None:
        return 1
    try:
        record = service.refresh(args.short_code)
        if record is None:
            print(f"Unknown short code: {args.short_code}")
            return 1
        print(json.dumps(record.to_dict(), indent=2))
        return 0
    finally:
        service.close()
