import asyncio
import datetime as dt
import logging
from typing import Optional

from google.cloud import monitoring_v3

from ..config import Settings
from ..periods import DateRange
from ..schemas import ComputeInstanceCosts
from .gcp_monitoring import MonitoringReader

LOG = logging.getLogger(__name__)

ASSUMED_UPTIME_PERCENT = 99.9
SAMPLE_PERIOD = dt.timedelta(hours=1)


def _cpu_filter(instance_name: str) -> str:
    return (
        'metric.type="compute.googleapis.com/instance/cpu/utilization" '
        'AND resource.type="gce_instance" '
        f'AND metric.labels.instance_name="{instance_name}"'
    )


def assumed_costs(rng: DateRange, settings: Settings) -> ComputeInstanceCosts:
    """No usage API: bill every hour of the period at the configured rate."""
    hours = rng.hours
    return ComputeInstanceCosts(
        total=hours * settings.compute_hourly_rate,
        uptime=ASSUMED_UPTIME_PERCENT,
        uptime_hours=hours,
        machine_type=settings.compute_machine_type,
        specs=settings.compute_specs,
        hourly_rate=settings.compute_hourly_rate,
        is_real_data=False,
    )


def observed_costs(rng: DateRange, settings: Settings, sampled_hours: int) -> ComputeInstanceCosts:
    hours = rng.hours
    uptime_hours = min(float(sampled_hours), hours)
    uptime = (uptime_hours / hours * 100) if hours > 0 else 0.0
    return ComputeInstanceCosts(
        total=uptime_hours * settings.compute_hourly_rate,
        uptime=uptime,
        uptime_hours=uptime_hours,
        machine_type=settings.compute_machine_type,
        specs=settings.compute_specs,
        hourly_rate=settings.compute_hourly_rate,
        is_real_data=True,
    )


async def fetch_costs(
    rng: DateRange, settings: Settings, monitoring: Optional[MonitoringReader]
) -> ComputeInstanceCosts:
    if monitoring is None:
        return assumed_costs(rng, settings)

    try:
        samples = await asyncio.to_thread(
            monitoring.sum_series,
            settings.compute_project,
            _cpu_filter(settings.compute_instance_name),
            rng.start,
            rng.end,
            SAMPLE_PERIOD,
            monitoring_v3.Aggregation.Aligner.ALIGN_MEAN,
        )
    except Exception as e:
        LOG.error(f"Compute Engine monitoring query failed: {e}")
        return assumed_costs(rng, settings)

    if samples.points == 0:
        LOG.info(f"no CPU samples for {settings.compute_instance_name}, assuming continuous uptime")
        return assumed_costs(rng, settings)
    return observed_costs(rng, settings, samples.points)
