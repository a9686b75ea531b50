import datetime as dt

import httpx
import pytest

from costpanel.config import Settings
from costpanel.periods import Period, resolve_range
from costpanel.providers import vapi

CALLS = [
    {
        "id": "call-1",
        "cost": 0.42,
        "costBreakdown": {"transport": 0.02, "stt": 0.05, "llm": 0.2, "tts": 0.1, "vapi": 0.05},
    },
    {
        "id": "call-2",
        "cost": 0.18,
        "costBreakdown": {"stt": 0.03, "llm": 0.1, "vapi": 0.05},
    },
    {"id": "call-3", "cost": None},
]


class TestQueryWindow:
    def test_long_ranges_are_capped(self, now):
        rng = resolve_range(Period.MONTH, now)
        start, limited = vapi.query_window(rng)
        assert limited is True
        assert start == rng.end - dt.timedelta(days=14)

    def test_short_ranges_are_untouched(self, now):
        rng = resolve_range(Period.WEEK, now)
        start, limited = vapi.query_window(rng)
        assert limited is False
        assert start == rng.start


def test_summarize_calls_tolerates_missing_fields():
    total, breakdown = vapi.summarize_calls(CALLS)
    assert total == pytest.approx(0.60)
    assert breakdown["llm"] == pytest.approx(0.3)
    assert breakdown["transport"] == pytest.approx(0.02)
    assert breakdown["tts"] == pytest.approx(0.1)


@pytest.mark.asyncio
class TestFetchCosts:
    async def test_without_key_returns_zero_and_skips_api(self, now, settings, no_network):
        costs = await vapi.fetch_costs(resolve_range(Period.ALL, now), settings, no_network)
        assert costs.total == 0
        assert costs.calls == 0
        assert costs.is_real_data is False
        assert costs.limited_to_14_days is False

    async def test_sums_calls_in_window(self, now, fetcher_for):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=CALLS)

        settings = Settings(vapi_api_key="vapi-key")
        costs = await vapi.fetch_costs(resolve_range(Period.MONTH, now), settings, fetcher_for(handler))

        assert costs.is_real_data is True
        assert costs.calls == 3
        assert costs.total == pytest.approx(0.60)
        assert costs.breakdown["stt"] == pytest.approx(0.08)
        assert costs.limited_to_14_days is True

        request = seen[0]
        assert request.url.path == "/call"
        assert request.url.params["limit"] == "1000"
        assert request.url.params["createdAtGt"].endswith("Z")
        assert request.headers["Authorization"] == "Bearer vapi-key"

    async def test_api_error_degrades_to_zero(self, now, fetcher_for):
        settings = Settings(vapi_api_key="vapi-key")
        fetcher = fetcher_for(lambda request: httpx.Response(401, json={"message": "bad key"}))
        costs = await vapi.fetch_costs(resolve_range(Period.MONTH, now), settings, fetcher)

        assert costs.total == 0
        assert costs.is_real_data is False
        assert costs.error == "API error: 401"
        assert costs.limited_to_14_days is True

    async def test_unexpected_shape_degrades_to_zero(self, now, fetcher_for):
        settings = Settings(vapi_api_key="vapi-key")
        fetcher = fetcher_for(lambda request: httpx.Response(200, json={"results": []}))
        costs = await vapi.fetch_costs(resolve_range(Period.TODAY, now), settings, fetcher)

        assert costs.total == 0
        assert costs.error == "Invalid response"
        assert costs.limited_to_14_days is False


def test_serializes_with_dashboard_field_names():
    data = vapi.VapiCosts(total=1.5, limited_to_14_days=True).model_dump(by_alias=True)
    assert data["limitedTo14Days"] is True
    assert data["isRealData"] is False
    assert data["total"] == 1.5
