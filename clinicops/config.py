"""
Centralized configuration for the clinic signal engine.

Deployment-specific values live here. Override via environment variables
where marked, or via <config_dir>/engine.yaml for pass tuning.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from clinicops import paths

logger = logging.getLogger(__name__)

# ============================================================
# Logging
# ============================================================

LOG_LEVEL: str = os.environ.get("CLINICOPS_LOG_LEVEL", "INFO")
"""Root log level for CLI and API processes."""

LOG_JSON: str | None = os.environ.get("CLINICOPS_LOG_JSON")
"""Force JSON ('1') or human ('0') log output. Unset = auto-detect from TTY."""

# ============================================================
# API
# ============================================================

API_TOKEN_ENV = "CLINICOPS_API_TOKEN"
"""Env var holding the bearer token for the HTTP API. Unset = auth disabled."""

CORS_ORIGINS: list[str] = os.environ.get("CLINICOPS_CORS_ORIGINS", "*").split(",")
"""Allowed CORS origins for the admin dashboard."""

# ============================================================
# Store collections
# ============================================================

CLINICS_COLLECTION = "clinics"
METRICS_COLLECTION = "metrics"
ADMIN_COLLECTION = "admin"
ALERT_INDEX_DOC = "alerts"
PASS_LOG_COLLECTION = "passes"
REVIEWS_COLLECTION = "reviews"

# ============================================================
# Pass tuning (engine.yaml)
# ============================================================

ENGINE_CONFIG_FILE = "engine.yaml"


@dataclass
class RetrySettings:
    """Retry policy for transient store errors."""

    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0


@dataclass
class MetricsSettings:
    """Which metrics provider to use and how to reach it."""

    provider: str = "store"  # store | http | clinic
    base_url: str = ""
    timeout_s: float = 10.0
    token: str = ""


@dataclass
class EngineConfig:
    """Tunable pass parameters. Policy, not correctness."""

    batch_size: int = 50
    max_workers: int = 10
    batch_delay_s: float = 0.1
    max_runtime_s: float | None = None
    status_filter: list[str] = field(default_factory=lambda: ["active"])
    metrics_window_days: int = 30
    retry: RetrySettings = field(default_factory=RetrySettings)
    metrics: MetricsSettings = field(default_factory=MetricsSettings)

    @classmethod
    def from_dict(cls, data: dict) -> "EngineConfig":
        """Build config from a parsed YAML mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and k not in ("retry", "metrics")}
        config = cls(**kwargs)
        if isinstance(data.get("retry"), dict):
            config.retry = _filtered(RetrySettings, data["retry"])
        if isinstance(data.get("metrics"), dict):
            config.metrics = _filtered(MetricsSettings, data["metrics"])
        return config


def _filtered(klass, data: dict):
    valid = {f.name for f in fields(klass)}
    return klass(**{k: v for k, v in data.items() if k in valid})


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """
    Load pass tuning from engine.yaml.

    Missing file means defaults. A malformed file is logged and ignored so a
    bad edit never stops the scheduled pass.
    """
    config_path = path or (paths.config_dir() / ENGINE_CONFIG_FILE)
    if not config_path.exists():
        return _apply_env(EngineConfig())

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load {config_path}: {e}; using defaults")
        return _apply_env(EngineConfig())

    return _apply_env(EngineConfig.from_dict(data.get("engine", data)))


def _apply_env(config: EngineConfig) -> EngineConfig:
    """Environment overrides win over engine.yaml."""
    if os.environ.get("CLINICOPS_BATCH_SIZE"):
        config.batch_size = int(os.environ["CLINICOPS_BATCH_SIZE"])
    if os.environ.get("CLINICOPS_MAX_WORKERS"):
        config.max_workers = int(os.environ["CLINICOPS_MAX_WORKERS"])
    if os.environ.get("CLINICOPS_METRICS_URL"):
        config.metrics.provider = "http"
        config.metrics.base_url = os.environ["CLINICOPS_METRICS_URL"]
    if os.environ.get("CLINICOPS_METRICS_TOKEN"):
        config.metrics.token = os.environ["CLINICOPS_METRICS_TOKEN"]
    return config
