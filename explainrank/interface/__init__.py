"""
ExplainRank Interface Module
============================

Command-line interface. The HTTP API lives in ``server.py``.
"""

from .cli import ExplainRankCLI, cli_main

__all__ = ["ExplainRankCLI", "cli_main"]
