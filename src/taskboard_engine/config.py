"""Load optional engine configuration from `.taskboard/config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .constants import (
    CONFIG_FILE,
    DEFAULT_LAYOUT_CACHE_SIZE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_NODE_SPACING,
    DEFAULT_PERSISTENCE_TIMEOUT_SECONDS,
    DEFAULT_RANK_SPACING,
    DEFAULT_SWEEP_PASSES,
    STATE_DIR_NAME,
)
from .io_utils import _load_data_with_error

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


def load_engine_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional engine config file.

    Args:
        project_dir: Project root directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    project_dir = project_dir.resolve()
    path = project_dir / STATE_DIR_NAME / CONFIG_FILE
    if not path.exists():
        return {}, None
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    raw = _get_nested(config, name)
    return raw if isinstance(raw, dict) else {}


def get_layout_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the `layout` block, or an empty dict if not present."""
    return _section(config, "layout")


def get_persistence_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the `persistence` block, or an empty dict if not present."""
    return _section(config, "persistence")


def get_workflow_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the `workflow` block, or an empty dict if not present."""
    return _section(config, "workflow")


def get_log_level(config: dict[str, Any]) -> str:
    """Extract the logging level, falling back to the default when invalid."""
    raw = _get_nested(config, "logging", "level")
    if isinstance(raw, str) and raw.upper() in VALID_LOG_LEVELS:
        return raw.upper()
    return DEFAULT_LOG_LEVEL


def _positive_number(block: dict[str, Any], key: str, default: Any, cast: type) -> Any:
    raw = block.get(key)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid config value {}={!r}; using {}", key, raw, default)
        return default
    if isinstance(raw, bool) or value <= 0:
        logger.warning("Ignoring invalid config value {}={!r}; using {}", key, raw, default)
        return default
    return value


@dataclass(frozen=True)
class EngineConfig:
    """Typed view over the raw config mapping."""

    node_spacing: int = DEFAULT_NODE_SPACING
    rank_spacing: int = DEFAULT_RANK_SPACING
    sweep_passes: int = DEFAULT_SWEEP_PASSES
    layout_cache_size: int = DEFAULT_LAYOUT_CACHE_SIZE
    persistence_timeout: float = DEFAULT_PERSISTENCE_TIMEOUT_SECONDS
    require_dependencies_done: bool = False
    log_level: str = DEFAULT_LOG_LEVEL
    events_enabled: bool = True

    @classmethod
    def from_mapping(cls, config: Optional[dict[str, Any]]) -> "EngineConfig":
        config = config if isinstance(config, dict) else {}
        layout = get_layout_config(config)
        persistence = get_persistence_config(config)
        workflow = get_workflow_config(config)
        events_enabled = _get_nested(config, "events", "enabled")
        return cls(
            node_spacing=_positive_number(layout, "node_spacing", DEFAULT_NODE_SPACING, int),
            rank_spacing=_positive_number(layout, "rank_spacing", DEFAULT_RANK_SPACING, int),
            sweep_passes=_positive_number(layout, "sweep_passes", DEFAULT_SWEEP_PASSES, int),
            layout_cache_size=_positive_number(layout, "cache_size", DEFAULT_LAYOUT_CACHE_SIZE, int),
            persistence_timeout=_positive_number(
                persistence, "timeout_seconds", DEFAULT_PERSISTENCE_TIMEOUT_SECONDS, float
            ),
            require_dependencies_done=bool(workflow.get("require_dependencies_done", False)),
            log_level=get_log_level(config),
            events_enabled=events_enabled if isinstance(events_enabled, bool) else True,
        )

    @classmethod
    def load(cls, project_dir: Path) -> "EngineConfig":
        """Load and parse the config for *project_dir*; errors fall back to defaults."""
        data, err = load_engine_config(project_dir)
        if err:
            logger.warning("Could not read engine config ({}); using defaults", err)
        return cls.from_mapping(data)
