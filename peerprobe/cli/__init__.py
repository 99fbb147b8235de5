"""
Command-line interface.
"""

from .probe_cli import PeerProbeCLI, main

__all__ = ["PeerProbeCLI", "main"]
