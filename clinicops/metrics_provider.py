"""
Clinic Signal Engine — Metrics Providers

Point-in-time metrics per clinic. Providers raise MetricsUnavailableError
for outages and timeouts; ``fetch_metrics_safely`` turns that into a zero
snapshot so the clinic is still evaluated. Any other exception is left to
the caller and fails the clinic.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from clinicops import config
from clinicops.config import MetricsSettings
from clinicops.errors import MetricsUnavailableError
from clinicops.models import Clinic, MetricsSnapshot
from clinicops.resilience import RetryConfig, retry_with_backoff
from clinicops.store import DocumentStore

logger = logging.getLogger(__name__)


class MetricsProvider(ABC):
    """Source of MetricsSnapshot values."""

    name = "base"

    @abstractmethod
    def get_metrics(self, slug: str, window_days: int = 30) -> MetricsSnapshot:
        """
        Metrics for one clinic.

        Raises:
            MetricsUnavailableError: provider outage, timeout or bad payload
        """

    def close(self) -> None:  # noqa: B027
        """Release any held resources."""


class StoreMetricsProvider(MetricsProvider):
    """Reads metrics/<slug> documents written by the analytics import."""

    name = "store"

    def __init__(self, store: DocumentStore):
        self.store = store

    def get_metrics(self, slug: str, window_days: int = 30) -> MetricsSnapshot:
        data = self.store.get(config.METRICS_COLLECTION, slug)
        if data is None:
            # No analytics yet is a real zero, not an outage
            return MetricsSnapshot.zero()
        try:
            return MetricsSnapshot.from_doc(data)
        except TypeError as e:
            raise MetricsUnavailableError(f"bad metrics document for {slug}: {e}") from e


class ClinicFieldsMetricsProvider(MetricsProvider):
    """Derives a snapshot from the traffic counters on the clinic itself."""

    name = "clinic"

    def __init__(self, store: DocumentStore):
        self.store = store

    def get_metrics(self, slug: str, window_days: int = 30) -> MetricsSnapshot:
        data = self.store.get(config.CLINICS_COLLECTION, slug)
        if data is None:
            raise MetricsUnavailableError(f"clinic {slug} not found")
        clinic = Clinic.from_store(slug, data)
        traffic = clinic.traffic
        impressions = traffic.impressions30d
        return MetricsSnapshot(
            clicks_last_30=traffic.clicks30d,
            impressions_last_30=impressions,
            calls_last_30=traffic.calls30d,
            visits_last_30=traffic.visits30d,
            traffic_last_90=traffic.clicks30d + traffic.visits30d,
            engagement_rate=(traffic.clicks30d / impressions) if impressions else 0.0,
            indexed=clinic.seo_meta.indexed,
        )


class HttpMetricsProvider(MetricsProvider):
    """
    Fetches metrics from the analytics service.

    Endpoint: GET {base_url}/metrics/{slug}?window=N
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout_s: float = 10.0,
        retry: RetryConfig | None = None,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.retry = retry or RetryConfig(max_retries=2)
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = client or httpx.Client(timeout=timeout_s, headers=headers)

    def get_metrics(self, slug: str, window_days: int = 30) -> MetricsSnapshot:
        def fetch() -> dict:
            response = self.client.get(
                f"{self.base_url}/metrics/{slug}",
                params={"window": window_days},
            )
            response.raise_for_status()
            return response.json()

        try:
            payload = retry_with_backoff(fetch, self.retry, logger)
        except (httpx.HTTPError, ValueError) as e:
            raise MetricsUnavailableError(f"metrics service error for {slug}: {e}") from e

        if not isinstance(payload, dict):
            raise MetricsUnavailableError(f"unexpected metrics payload for {slug}")
        return MetricsSnapshot.from_doc(payload.get("metrics", payload))

    def close(self) -> None:
        self.client.close()


@dataclass
class MetricsFetch:
    """Snapshot plus the degradation warning, if any."""

    snapshot: MetricsSnapshot
    warning: str | None = None


def fetch_metrics_safely(
    provider: MetricsProvider, slug: str, window_days: int = 30
) -> MetricsFetch:
    """
    Fetch metrics, degrading to zeros when the provider is unavailable.

    Only MetricsUnavailableError degrades. Anything else propagates and is
    recorded as a failure for this clinic.
    """
    try:
        return MetricsFetch(provider.get_metrics(slug, window_days))
    except MetricsUnavailableError as e:
        logger.warning(f"Metrics unavailable for {slug}, using zeros: {e}")
        return MetricsFetch(MetricsSnapshot.zero(), warning=f"metrics unavailable: {e}")


def build_metrics_provider(settings: MetricsSettings, store: DocumentStore) -> MetricsProvider:
    """Provider named by engine config."""
    if settings.provider == "http":
        if not settings.base_url:
            raise ValueError("metrics.provider is http but metrics.base_url is empty")
        return HttpMetricsProvider(
            settings.base_url,
            token=settings.token,
            timeout_s=settings.timeout_s,
        )
    if settings.provider == "clinic":
        return ClinicFieldsMetricsProvider(store)
    return StoreMetricsProvider(store)
