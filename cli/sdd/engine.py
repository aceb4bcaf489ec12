"""Engine instance shared by the commands of one CLI invocation."""

from pipeline.config import get_config
from pipeline.engine import WorkflowEngine, build_engine

_engine: WorkflowEngine | None = None
_plugins_loaded = False


def get_engine(load_plugins: bool = True) -> WorkflowEngine:
    """Build the engine once per invocation, loading plugins on first request."""
    global _engine, _plugins_loaded
    if _engine is None:
        _engine = build_engine(get_config())
    if load_plugins and not _plugins_loaded:
        _engine.start()
        _plugins_loaded = True
    return _engine
