import asyncio
import logging
from typing import Optional

from ..config import Settings
from ..periods import DateRange
from ..schemas import CloudRunCosts
from .gcp_monitoring import MetricTotals, MonitoringReader

LOG = logging.getLogger(__name__)

# us-central1 list prices
CPU_PER_VCPU_SECOND = 0.000024
MEM_PER_GIB_SECOND = 0.0000025
REQUESTS_PER_MILLION = 0.40
MEMORY_GIB = 0.5

AVG_REQUEST_SECONDS = 0.5
ESTIMATED_DAILY_REQUESTS = 200
ESTIMATED_DAILY_CPU_HOURS = 0.5

REQUEST_COUNT_FILTER = 'metric.type="run.googleapis.com/request_count" AND resource.type="cloud_run_revision"'
BILLABLE_TIME_FILTER = (
    'metric.type="run.googleapis.com/container/billable_instance_time" '
    'AND resource.type="cloud_run_revision"'
)


def usage_cost(requests: int, billable_seconds: float) -> float:
    cpu = billable_seconds * CPU_PER_VCPU_SECOND
    mem = billable_seconds * MEMORY_GIB * MEM_PER_GIB_SECOND
    return cpu + mem + (requests / 1_000_000) * REQUESTS_PER_MILLION


def estimated_costs(rng: DateRange, settings: Settings) -> CloudRunCosts:
    requests = rng.days * ESTIMATED_DAILY_REQUESTS
    return CloudRunCosts(
        total=(requests / 1_000_000) * REQUESTS_PER_MILLION,
        requests=round(requests),
        cpu_hours=rng.days * ESTIMATED_DAILY_CPU_HOURS,
        is_real_data=False,
        project_id=settings.gcp_cloud_run_project,
    )


def _read_usage(monitoring: MonitoringReader, project_id: str, rng: DateRange):
    requests = monitoring.sum_series(project_id, REQUEST_COUNT_FILTER, rng.start, rng.end)
    billable = monitoring.sum_series(project_id, BILLABLE_TIME_FILTER, rng.start, rng.end)
    return requests, billable


async def fetch_costs(
    rng: DateRange, settings: Settings, monitoring: Optional[MonitoringReader]
) -> CloudRunCosts:
    if monitoring is None:
        return estimated_costs(rng, settings)

    project_id = settings.gcp_cloud_run_project
    try:
        requests, billable = await asyncio.to_thread(_read_usage, monitoring, project_id, rng)
    except Exception as e:
        LOG.error(f"Cloud Run monitoring query failed for {project_id}: {e}")
        return estimated_costs(rng, settings)

    return costs_from_usage(rng, settings, requests, billable)


def costs_from_usage(
    rng: DateRange, settings: Settings, requests: MetricTotals, billable: MetricTotals
) -> CloudRunCosts:
    request_count = int(requests.value)
    billable_seconds = billable.value
    if request_count <= 0 and billable_seconds <= 0:
        return estimated_costs(rng, settings)

    if billable_seconds <= 0:
        billable_seconds = request_count * AVG_REQUEST_SECONDS

    return CloudRunCosts(
        total=usage_cost(request_count, billable_seconds),
        requests=request_count,
        cpu_hours=billable_seconds / 3600,
        is_real_data=True,
        service_name=requests.labels.get("service_name", "gps-bot"),
        project_id=settings.gcp_cloud_run_project,
    )
