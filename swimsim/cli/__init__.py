"""
swimsim command line interface.

Provides the `swimsim` command for running convergence experiments.
"""

from .main import cli, main

__all__ = ["main", "cli"]
