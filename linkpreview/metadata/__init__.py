"""Parsers that turn fetched documents into ``PageMetadata``."""

from .html_extractor import extract_from_html, find_amp_url, parse_document
from .structured_data import extract_from_jsonld

__all__ = ["extract_from_html", "extract_from_jsonld", "find_amp_url", "parse_document"]
