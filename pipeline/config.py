"""Configuration management for the SDD workflow engine.

Loads configuration from:
1. config.toml (defaults)
2. Environment variables (overrides)
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from dotenv import load_dotenv
from rich.logging import RichHandler

# Load .env file if present
load_dotenv()


@dataclass
class WorkflowConfig:
    """Workflow state persistence configuration."""

    state_dir: str = ".sdd/state"  # One JSON record per project


@dataclass
class PluginsConfig:
    """Plugin system configuration.

    Plugins contribute hooks, tools and steering documents to the engine.
    """

    enabled: bool = True  # Enable plugin system
    plugins_dir: str = ""  # Additional plugins directory (empty = defaults only)
    enabled_plugins: list[str] = field(default_factory=list)  # Whitelist (empty = all)
    disabled_plugins: list[str] = field(default_factory=list)  # Blacklist
    plugin_config: dict[str, dict[str, Any]] = field(default_factory=dict)  # Per-plugin config


@dataclass
class HooksConfig:
    """Hook execution configuration."""

    handler_timeout: float | None = 30.0  # Seconds; None or 0 disables the deadline


@dataclass
class ToolsConfig:
    """Tool execution configuration."""

    handler_timeout: float | None = 120.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "INFO"


@dataclass
class Config:
    """Main configuration container."""

    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    plugins: PluginsConfig = field(default_factory=PluginsConfig)
    hooks: HooksConfig = field(default_factory=HooksConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        return cls(
            workflow=WorkflowConfig(**data.get("workflow", {})),
            plugins=PluginsConfig(**data.get("plugins", {})),
            hooks=HooksConfig(**data.get("hooks", {})),
            tools=ToolsConfig(**data.get("tools", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    def plugin_dirs(self) -> list[Path]:
        """Directories scanned for plugins: the defaults plus ``plugins_dir``."""
        from plugins.loader import PluginLoader

        dirs = PluginLoader.get_default_plugin_dirs()
        if self.plugins.plugins_dir:
            dirs.append(Path(self.plugins.plugins_dir).expanduser())
        return dirs


def find_config_file() -> Path | None:
    """Find config.toml in current or parent directories.

    Returns:
        Path to config.toml or None if not found.
    """
    current = Path.cwd()

    for directory in [current, *current.parents]:
        config_path = directory / "config.toml"
        if config_path.exists():
            return config_path

    return None


def load_config(config_path: Path | str | None = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Optional explicit path to config.toml

    Returns:
        Config object with merged settings.
    """
    # Start with defaults
    config_data: dict[str, Any] = {}

    # Load from file if available
    if config_path is None:
        config_path = find_config_file()

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path, "rb") as f:
                config_data = tomllib.load(f)

    # Apply environment variable overrides
    env_overrides = {
        "workflow": {
            "state_dir": os.getenv("SDD_STATE_DIR"),
        },
        "plugins": {
            "plugins_dir": os.getenv("SDD_PLUGINS_DIR"),
        },
        "hooks": {
            "handler_timeout": _float_or_none(os.getenv("SDD_HOOK_TIMEOUT")),
        },
        "tools": {
            "handler_timeout": _float_or_none(os.getenv("SDD_TOOL_TIMEOUT")),
        },
        "logging": {
            "log_level": os.getenv("LOG_LEVEL"),
        },
    }

    # Merge env overrides (only non-None values)
    for section, values in env_overrides.items():
        if section not in config_data:
            config_data[section] = {}
        for key, value in values.items():
            if value is not None:
                config_data[section][key] = value

    return Config.from_dict(config_data)


def _float_or_none(value: str | None) -> float | None:
    """Convert string to float, or return None."""
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def setup_logging(level: str = "INFO") -> None:
    """Route log records through rich for terminal output."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


# Global config instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config object (loaded once, cached).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config

