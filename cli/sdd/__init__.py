"""sdd command-line interface.

Drive project workflows and inspect loaded plugins from a terminal.
"""

from pipeline import __version__

from cli.sdd.cli import app, main

__all__ = ["__version__", "app", "main"]
