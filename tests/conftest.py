import datetime as dt

import httpx
import pytest

from costpanel.config import Settings
from costpanel.providers.gcp_monitoring import MetricTotals
from costpanel.upstream import JsonFetcher

# Friday afternoon, 19 days into March
NOW = dt.datetime(2026, 3, 20, 15, 30)


@pytest.fixture
def now():
    return NOW


ENV_VARS = [name.upper() for name in Settings.model_fields] + ["LOG_LEVEL"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep the developer's environment and .env file out of Settings()."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings():
    """Settings with every credential absent."""
    return Settings()


@pytest.fixture
def fetcher_for():
    """Build a JsonFetcher whose requests are answered by `handler`."""

    def build(handler, cache=None):
        return JsonFetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)), cache)

    return build


@pytest.fixture
def no_network(fetcher_for):
    def handler(request):
        raise AssertionError(f"unexpected request to {request.url}")

    return fetcher_for(handler)


class FakeMonitoring:
    """Stands in for MonitoringReader; answers by metric name."""

    def __init__(self, results=None, error=None):
        self.results = results or {}
        self.error = error
        self.queries = []

    def sum_series(self, project_id, metric_filter, start, end, alignment=None, aligner=None):
        self.queries.append((project_id, metric_filter))
        if self.error is not None:
            raise self.error
        for metric, totals in self.results.items():
            if metric in metric_filter:
                return totals
        return MetricTotals()


@pytest.fixture
def fake_monitoring():
    return FakeMonitoring
