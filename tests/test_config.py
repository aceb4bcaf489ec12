"""Tests for configuration loading."""

from pathlib import Path

from pipeline.config import Config, load_config
from pipeline.engine import build_engine


class TestLoadConfig:
    def test_defaults(self, tmp_path: Path, monkeypatch) -> None:
        for var in ["SDD_STATE_DIR", "SDD_PLUGINS_DIR", "SDD_HOOK_TIMEOUT", "SDD_TOOL_TIMEOUT", "LOG_LEVEL"]:
            monkeypatch.delenv(var, raising=False)

        config = load_config(tmp_path / "missing.toml")

        assert config.workflow.state_dir == ".sdd/state"
        assert config.plugins.enabled is True
        assert config.hooks.handler_timeout == 30.0
        assert config.tools.handler_timeout == 120.0
        assert config.logging.log_level == "INFO"

    def test_toml_file(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.delenv("SDD_HOOK_TIMEOUT", raising=False)
        path = tmp_path / "config.toml"
        path.write_text(
            '[plugins]\ndisabled_plugins = ["noisy"]\n\n'
            '[plugins.plugin_config.quality-gate]\nmin_requirements = 3\n\n'
            "[hooks]\nhandler_timeout = 5\n"
        )

        config = load_config(path)

        assert config.plugins.disabled_plugins == ["noisy"]
        assert config.plugins.plugin_config == {"quality-gate": {"min_requirements": 3}}
        assert config.hooks.handler_timeout == 5

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch) -> None:
        path = tmp_path / "config.toml"
        path.write_text('[workflow]\nstate_dir = "from-file"\n')
        monkeypatch.setenv("SDD_STATE_DIR", "from-env")
        monkeypatch.setenv("SDD_TOOL_TIMEOUT", "7.5")
        monkeypatch.setenv("SDD_HOOK_TIMEOUT", "not-a-number")

        config = load_config(path)

        assert config.workflow.state_dir == "from-env"
        assert config.tools.handler_timeout == 7.5
        assert config.hooks.handler_timeout == 30.0

    def test_plugin_dirs_include_configured_dir(self, tmp_path: Path) -> None:
        config = Config.from_dict({"plugins": {"plugins_dir": str(tmp_path)}})

        dirs = config.plugin_dirs()

        assert dirs[-1] == tmp_path
        assert dirs[0].name == "plugins"


class TestBuildEngine:
    def test_engine_wires_registries(self, tmp_path: Path) -> None:
        config = Config.from_dict({"workflow": {"state_dir": str(tmp_path / "state")}, "hooks": {"handler_timeout": 0}})

        engine = build_engine(config, plugin_dirs=[])

        assert engine.hooks.handler_timeout is None
        assert engine.tools.handler_timeout == 120.0
        assert engine.workflow.hooks is engine.hooks
        assert engine.workflow.store.state_dir == tmp_path / "state"
        assert engine.start() == []

    def test_plugins_disabled(self, tmp_path: Path) -> None:
        config = Config.from_dict({"plugins": {"enabled": False}, "workflow": {"state_dir": str(tmp_path)}})
        assert build_engine(config, plugin_dirs=[tmp_path]).start() == []
