"""Command line tooling for the pbus event bus."""

from .main import build_parser, main

__all__ = ["build_parser", "main"]
