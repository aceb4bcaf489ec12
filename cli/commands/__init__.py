"""CLI command modules for the sdd CLI."""

from cli.commands.plugins import plugins_app
from cli.commands.steering import steering_app
from cli.commands.tools import tools_app

__all__ = ["plugins_app", "steering_app", "tools_app"]
