"""
Test configuration: repo root on sys.path, isolated app home and shared fixtures.

Every test runs with CLINICOPS_HOME and CLINICOPS_DB pointed into tmp_path,
and sqlite3.connect refuses the live store under ~/.clinicops.
"""

import sqlite3
import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

# Add repo root to sys.path so tests can import clinicops.*, api.*, cli.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from clinicops import config  # noqa: E402
from clinicops.config import EngineConfig, RetrySettings  # noqa: E402
from clinicops.orchestrator import BatchOrchestrator  # noqa: E402
from clinicops.store import Database, DocumentStore  # noqa: E402
from tests.fixtures import NOW, FakeMetricsProvider, clinic_doc  # noqa: E402

# =============================================================================
# DETERMINISM GUARD: Block live database access
# =============================================================================

LIVE_DB_ABSOLUTE = Path.home() / ".clinicops" / "data" / "clinicops.db"

_original_sqlite_connect = sqlite3.connect


def _guarded_sqlite_connect(database, *args, **kwargs):
    """Intercept sqlite3.connect to block live DB access."""
    if str(database) != ":memory:" and Path(str(database)).resolve() == LIVE_DB_ABSOLUTE:
        raise RuntimeError(
            f"DETERMINISM VIOLATION: Test attempted to access live DB at {database}.\n"
            "Use the store fixture from tests/conftest.py."
        )
    return _original_sqlite_connect(database, *args, **kwargs)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point app home and the default DB into the test's tmp dir."""
    monkeypatch.setenv("CLINICOPS_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("CLINICOPS_DB", str(tmp_path / "home" / "clinicops.db"))
    for var in (
        "CLINICOPS_BATCH_SIZE",
        "CLINICOPS_MAX_WORKERS",
        "CLINICOPS_METRICS_URL",
        "CLINICOPS_METRICS_TOKEN",
        config.API_TOKEN_ENV,
    ):
        monkeypatch.delenv(var, raising=False)
    with patch("sqlite3.connect", _guarded_sqlite_connect):
        yield


# =============================================================================
# CLOCK / STORE
# =============================================================================


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def store(db) -> DocumentStore:
    return DocumentStore(db)


@pytest.fixture
def add_clinic(store):
    """Insert a clinic document and return its slug."""

    def _add(slug: str, **overrides) -> str:
        store.set(config.CLINICS_COLLECTION, slug, clinic_doc(**overrides))
        return slug

    return _add


# =============================================================================
# ORCHESTRATOR
# =============================================================================


@pytest.fixture
def metrics() -> FakeMetricsProvider:
    return FakeMetricsProvider()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(
        batch_size=5,
        max_workers=4,
        batch_delay_s=0.0,
        retry=RetrySettings(max_retries=1, base_delay=0.0, max_delay=0.0),
    )


@pytest.fixture
def orchestrator(store, engine_config, metrics, now) -> BatchOrchestrator:
    return BatchOrchestrator(
        store,
        engine_config,
        metrics,
        clock=lambda: now,
        sleep=lambda _s: None,
    )
