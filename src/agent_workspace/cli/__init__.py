"""
CLI module for agent-workspace.

Provides a command-line interface for running workspace filesystem tools.
"""

from agent_workspace.cli.main import cli

__all__ = ["cli"]
