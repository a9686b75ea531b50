import asyncio
import datetime as dt
import logging
from typing import Optional

from .config import Settings
from .periods import Period, resolve_range
from .providers import cloud_run, compute_engine, hetzner, vapi
from .providers.gcp_monitoring import MonitoringReader
from .schemas import CostReport
from .upstream import JsonFetcher

LOG = logging.getLogger(__name__)


class CostAggregator:
    """Fans out to every service estimator and sums what comes back.

    Estimators absorb their own upstream failures, so the only exceptions
    leaving `collect` are genuine bugs.
    """

    def __init__(self, settings: Settings, fetcher: JsonFetcher, monitoring: Optional[MonitoringReader] = None):
        self.settings = settings
        self.fetcher = fetcher
        self.monitoring = monitoring

    @classmethod
    def from_settings(cls, settings: Settings, fetcher: JsonFetcher) -> "CostAggregator":
        return cls(settings, fetcher, MonitoringReader.from_settings(settings))

    async def collect(self, period: Period, now: Optional[dt.datetime] = None) -> CostReport:
        rng = resolve_range(period, now)
        LOG.info(f"collecting costs period={rng.period.value} start={rng.start.isoformat()}")

        vapi_costs, cloud_run_costs, chatwoot, openclaw = await asyncio.gather(
            vapi.fetch_costs(rng, self.settings, self.fetcher),
            cloud_run.fetch_costs(rng, self.settings, self.monitoring),
            hetzner.fetch_costs(rng, self.settings, self.fetcher),
            compute_engine.fetch_costs(rng, self.settings, self.monitoring),
        )

        total = vapi_costs.total + cloud_run_costs.total + chatwoot.total + openclaw.total
        return CostReport(
            vapi=vapi_costs,
            cloud_run=cloud_run_costs,
            chatwoot=chatwoot,
            openclaw=openclaw,
            total_month=total,
            period=rng.period,
            timestamp=dt.datetime.now(dt.timezone.utc),
            gcp_billing_account=self.settings.gcp_billing_account_id,
            gcp_projects={"cloudRun": self.settings.gcp_cloud_run_project},
        )
