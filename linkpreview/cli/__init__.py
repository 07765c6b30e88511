"""Command line interface for the link preview engine."""
