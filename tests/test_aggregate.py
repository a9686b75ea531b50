import asyncio

import httpx
import pytest

from costpanel.aggregate import CostAggregator
from costpanel.config import Settings
from costpanel.periods import Period
from costpanel.providers.gcp_monitoring import MetricTotals
from test_hetzner import make_server


def upstream(request):
    if request.url.path.endswith("/call"):
        return httpx.Response(200, json=[{"cost": 1.25, "costBreakdown": {"llm": 1.0, "tts": 0.25}}])
    if request.url.path.endswith("/servers"):
        return httpx.Response(200, json={"servers": [make_server()]})
    return httpx.Response(404)


@pytest.mark.asyncio
class TestCostAggregator:
    async def test_today_without_credentials(self, now, settings, no_network):
        report = await CostAggregator(settings, no_network).collect(Period.TODAY, now)

        assert report.vapi.total == 0
        assert report.chatwoot.total == 0
        assert not any(
            c.is_real_data for c in (report.vapi, report.cloud_run, report.chatwoot, report.openclaw)
        )
        days = 15.5 / 24
        cloud_run_estimate = days * 200 / 1_000_000 * 0.40
        compute_estimate = 15.5 * settings.compute_hourly_rate
        assert report.total_month == pytest.approx(cloud_run_estimate + compute_estimate, abs=1e-9)
        assert report.timestamp is not None
        assert report.period is Period.TODAY

    async def test_total_is_sum_of_services(self, now, fetcher_for, fake_monitoring):
        settings = Settings(vapi_api_key="vapi-key", hetzner_api_token="hz-token")
        monitoring = fake_monitoring(
            {
                "request_count": MetricTotals(value=5_000, points=20),
                "billable_instance_time": MetricTotals(value=7_200, points=20),
                "cpu/utilization": MetricTotals(value=9.0, points=400),
            }
        )
        report = await CostAggregator(settings, fetcher_for(upstream), monitoring).collect(Period.MONTH, now)

        assert report.vapi.is_real_data and report.cloud_run.is_real_data
        assert report.chatwoot.is_real_data and report.openclaw.is_real_data
        parts = report.vapi.total + report.cloud_run.total + report.chatwoot.total + report.openclaw.total
        assert report.total_month == pytest.approx(parts, abs=1e-6)
        assert report.vapi.total == pytest.approx(1.25)

    async def test_failures_stay_inside_estimators(self, now, fetcher_for):
        settings = Settings(vapi_api_key="vapi-key", hetzner_api_token="hz-token")
        fetcher = fetcher_for(lambda request: httpx.Response(502))
        report = await CostAggregator(settings, fetcher).collect(Period.WEEK, now)

        assert report.vapi.error == "API error: 502"
        assert report.chatwoot.error == "API error: 502"
        assert report.total_month == pytest.approx(report.cloud_run.total + report.openclaw.total)

    async def test_estimators_run_concurrently(self, now, fetcher_for):
        in_flight = []
        peak = []

        async def slow(request):
            in_flight.append(request.url.path)
            peak.append(len(in_flight))
            await asyncio.sleep(0.05)
            in_flight.remove(request.url.path)
            return upstream(request)

        settings = Settings(vapi_api_key="vapi-key", hetzner_api_token="hz-token")
        fetcher = fetcher_for(slow)
        await CostAggregator(settings, fetcher).collect(Period.TODAY, now)
        assert max(peak) == 2

    async def test_report_metadata(self, now, settings, no_network):
        report = await CostAggregator(settings, no_network).collect(Period.ALL, now)
        data = report.model_dump(by_alias=True, mode="json")

        assert set(data) >= {"vapi", "cloudRun", "chatwoot", "openclaw", "totalMonth", "timestamp"}
        assert data["gcpBillingAccount"] == settings.gcp_billing_account_id
        assert data["gcpProjects"] == {"cloudRun": settings.gcp_cloud_run_project}
        assert data["period"] == "all"
