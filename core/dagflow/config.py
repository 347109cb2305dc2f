"""Shared dagflow configuration utilities.

Centralises reading of ~/.dagflow/configuration.json so the scheduler, the
reference resolver and logging setup share one implementation. Set
DAGFLOW_CONFIG to point at a different file.

Example file:
    {
        "scheduler": {"parallel": false, "max_concurrency": 4},
        "references": {"max_depth": 2, "include_all_successful": false},
        "logging": {"level": "INFO", "format": "auto"}
    }
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_MAX_CONCURRENCY = 4
DEFAULT_REFERENCE_DEPTH = 2

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

DAGFLOW_CONFIG_FILE = Path.home() / ".dagflow" / "configuration.json"


def get_config_path() -> Path:
    """Path of the configuration file, honouring DAGFLOW_CONFIG."""
    override = os.environ.get("DAGFLOW_CONFIG")
    return Path(override).expanduser() if override else DAGFLOW_CONFIG_FILE


def get_dagflow_config() -> dict[str, Any]:
    """Load dagflow configuration; an absent or unreadable file yields {}."""
    config_file = get_config_path()
    if not config_file.exists():
        return {}
    try:
        with open(config_file, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def _section(name: str) -> dict[str, Any]:
    section = get_dagflow_config().get(name, {})
    return section if isinstance(section, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_parallel_enabled() -> bool:
    """Whether start_execution uses the work-queue scheduler by default."""
    return bool(_section("scheduler").get("parallel", False))


def get_max_concurrency() -> int:
    """Upper bound on nodes running at once in parallel mode."""
    value = _section("scheduler").get("max_concurrency", DEFAULT_MAX_CONCURRENCY)
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return DEFAULT_MAX_CONCURRENCY


def get_reference_max_depth() -> int:
    """How deep reference listing descends into object payloads."""
    value = _section("references").get("max_depth", DEFAULT_REFERENCE_DEPTH)
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return DEFAULT_REFERENCE_DEPTH


def get_include_all_successful() -> bool:
    """Whether reference listing falls back to every successfully run node."""
    return bool(_section("references").get("include_all_successful", False))


def get_log_level() -> str:
    """Log level from LOG_LEVEL, then the config file, then INFO."""
    return os.environ.get("LOG_LEVEL") or str(_section("logging").get("level", "INFO"))


def get_log_format() -> str:
    """Log format ("json", "human" or "auto") from the config file."""
    return str(_section("logging").get("format", "auto"))


# ---------------------------------------------------------------------------
# Config objects
# ---------------------------------------------------------------------------


@dataclass
class SchedulerConfig:
    """Execution scheduler settings loaded from the configuration file."""

    parallel: bool = field(default_factory=get_parallel_enabled)
    max_concurrency: int = field(default_factory=get_max_concurrency)


@dataclass
class ReferenceConfig:
    """Reference resolver settings loaded from the configuration file."""

    max_depth: int = field(default_factory=get_reference_max_depth)
    include_all_successful: bool = field(default_factory=get_include_all_successful)
