"""Command modules, loaded on demand by ``cli_modular``."""
