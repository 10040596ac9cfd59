"""Lifeboat configuration management.

Loads configuration from .lifeboat/config.yaml with sensible defaults.
All settings can be overridden via environment variables (LIFEBOAT_*).

Config locations (in priority order):
1. Explicit path passed to load_config()
2. .lifeboat/config.yaml (project-local)
3. ~/.lifeboat/config.yaml (user-global)
4. Built-in defaults

Thread Safety:
    Uses threading.Lock for thread-safe lazy initialization.
"""

from __future__ import annotations

import copy
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from lifeboat.errors import ConfigError

ENV_PREFIX = "LIFEBOAT_"


@dataclass
class ExecutorConfig:
    """Step execution defaults."""

    default_timeout_ms: int = 300_000
    """Timeout used when a step's duration string cannot be parsed."""

    validation_timeout_ms: int = 30_000
    """Fixed timeout for every completion validation command."""

    def __post_init__(self) -> None:
        for name in ("default_timeout_ms", "validation_timeout_ms"):
            value = getattr(self, name)
            # bool is an int subclass
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(
                    f"executor.{name}",
                    f"must be a positive integer (milliseconds), got {value!r}",
                )


@dataclass
class RetryConfig:
    """Bounded retry for steps marked ``retryable``."""

    max_attempts: int = 3
    """Total attempts including the first one."""

    backoff_ms: tuple[int, ...] = (100, 500, 2000)
    """Delay before attempt N+1; the last value repeats."""

    def __post_init__(self) -> None:
        if not 1 <= self.max_attempts <= 10:
            raise ConfigError(
                "retry.max_attempts",
                f"must be between 1 and 10, got {self.max_attempts}",
            )
        self.backoff_ms = tuple(int(v) for v in self.backoff_ms)
        if any(v < 0 for v in self.backoff_ms):
            raise ConfigError("retry.backoff_ms", "delays must be >= 0")

    def delay_seconds(self, retry_number: int) -> float:
        """Backoff before the given retry (1-based)."""
        if not self.backoff_ms:
            return 0.0
        index = min(retry_number - 1, len(self.backoff_ms) - 1)
        return self.backoff_ms[index] / 1000


@dataclass
class OrchestratorConfig:
    """Recovery orchestration behaviour."""

    max_parallel_steps: int | None = None
    """Cap on concurrently running steps within a level (None = unbounded)."""

    reject_concurrent_triggers: bool = True
    """Refuse a second trigger of a scenario while one is in flight."""

    def __post_init__(self) -> None:
        if self.max_parallel_steps is not None and self.max_parallel_steps < 1:
            raise ConfigError("orchestrator.max_parallel_steps", "must be >= 1 or null")


@dataclass
class ValidationConfig:
    """Completion validation behaviour."""

    enforce_thresholds: bool = False
    """Compare validation output against each check's threshold."""


@dataclass
class HistoryConfig:
    """Retention of finished executions."""

    max_finished_executions: int | None = None
    """Evict the oldest finished executions beyond this count (None = keep all)."""


@dataclass
class LifeboatConfig:
    """Root configuration for Lifeboat."""

    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)

    debug: bool = False
    """Enable DEBUG logging by default."""


_DEFAULTS: dict[str, Any] = {
    "executor": {
        "default_timeout_ms": 300_000,
        "validation_timeout_ms": 30_000,
    },
    "retry": {
        "max_attempts": 3,
        "backoff_ms": [100, 500, 2000],
    },
    "orchestrator": {
        "max_parallel_steps": None,
        "reject_concurrent_triggers": True,
    },
    "validation": {
        "enforce_thresholds": False,
    },
    "history": {
        "max_finished_executions": None,
    },
    "debug": False,
}

# Global config instance (lazy-loaded, thread-safe)
_config: LifeboatConfig | None = None
_config_lock = threading.Lock()


def _deep_update(base: dict, updates: dict) -> dict:
    """Recursively update a dict with another dict."""
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def _coerce(value: str) -> Any:
    """Coerce an environment string to bool/int/float/None/list."""
    lowered = value.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("null", "none", ""):
        return None
    if "," in value:
        return [_coerce(part) for part in value.split(",")]
    if lowered.lstrip("-").isdigit():
        return int(lowered)
    try:
        return float(value)
    except ValueError:
        return value


def _apply_env_overrides(config_dict: dict, environ: dict[str, str] | None = None) -> dict:
    """Apply environment variable overrides.

    Environment variables follow pattern: LIFEBOAT_SECTION_KEY. The section is
    matched against the known top-level sections, so keys may contain
    underscores.

    Examples:
        LIFEBOAT_RETRY_MAX_ATTEMPTS=5
        LIFEBOAT_RETRY_BACKOFF_MS=50,100
        LIFEBOAT_ORCHESTRATOR_MAX_PARALLEL_STEPS=4
        LIFEBOAT_DEBUG=true
    """
    environ = os.environ if environ is None else environ

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        path_str = key[len(ENV_PREFIX):].lower()

        if path_str == "debug":
            config_dict["debug"] = _coerce(value)
            continue

        for section, section_values in config_dict.items():
            if not isinstance(section_values, dict):
                continue
            if path_str.startswith(section + "_"):
                option = path_str[len(section) + 1:]
                if option in section_values:
                    section_values[option] = _coerce(value)
                break

    return config_dict


def _dict_to_config(data: dict) -> LifeboatConfig:
    """Convert a dict to LifeboatConfig."""
    try:
        retry_data = dict(data.get("retry") or {})
        backoff = retry_data.get("backoff_ms")
        if backoff is not None and not isinstance(backoff, (list, tuple)):
            retry_data["backoff_ms"] = [backoff]
        return LifeboatConfig(
            executor=ExecutorConfig(**(data.get("executor") or {})),
            retry=RetryConfig(**retry_data),
            orchestrator=OrchestratorConfig(**(data.get("orchestrator") or {})),
            validation=ValidationConfig(**(data.get("validation") or {})),
            history=HistoryConfig(**(data.get("history") or {})),
            debug=bool(data.get("debug", False)),
        )
    except TypeError as e:
        raise ConfigError("config", str(e), e) from e


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> LifeboatConfig:
    """Load configuration from file with defaults and env overrides.

    Priority (highest to lowest):
    1. Environment variables (LIFEBOAT_*)
    2. Explicit path if provided
    3. .lifeboat/config.yaml (project-local)
    4. ~/.lifeboat/config.yaml (user-global)
    5. Built-in defaults

    Args:
        path: Optional explicit config file path.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Merged LifeboatConfig instance.

    Raises:
        ConfigError: If the explicit file is missing or any file is malformed
    """
    global _config

    config_dict = copy.deepcopy(_DEFAULTS)

    config_paths: list[Path] = []
    if path:
        config_paths.append(Path(path))
        if not Path(path).exists():
            raise ConfigError(str(path), "config file not found")
    config_paths.extend([
        Path(".lifeboat/config.yaml"),
        Path.home() / ".lifeboat" / "config.yaml",
    ])

    for config_path in config_paths:
        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(str(config_path), f"invalid YAML: {e}", e) from e
            if not isinstance(file_config, dict):
                raise ConfigError(str(config_path), "top-level document must be a mapping")
            _deep_update(config_dict, file_config)
            break  # Use first found config

    config_dict = _apply_env_overrides(config_dict, environ)

    _config = _dict_to_config(config_dict)
    return _config


def get_config() -> LifeboatConfig:
    """Get the current configuration, loading if needed.

    Thread-safe with double-check locking.
    """
    global _config

    if _config is not None:
        return _config

    with _config_lock:
        if _config is None:
            _config = load_config()
        return _config


def reset_config() -> None:
    """Reset the global config (useful for testing)."""
    global _config
    with _config_lock:
        _config = None
