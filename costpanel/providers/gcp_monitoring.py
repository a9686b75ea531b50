import base64
import binascii
import datetime as dt
import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional

from google.auth.exceptions import GoogleAuthError
from google.cloud import monitoring_v3
from google.oauth2 import service_account

from ..config import Settings

LOG = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/cloud-billing.readonly",
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/monitoring.read",
]


def load_credentials(encoded: str) -> Optional[service_account.Credentials]:
    """Decode base64 service-account JSON; None when absent or unreadable."""
    if not encoded:
        LOG.warning("GCP_BILLING_CREDENTIALS not configured")
        return None
    try:
        info = json.loads(base64.b64decode(encoded).decode("utf-8"))
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, GoogleAuthError) as e:
        LOG.error(f"Error parsing GCP credentials: {e}")
        return None


@dataclass
class MetricTotals:
    value: float = 0.0
    points: int = 0
    labels: Dict[str, str] = field(default_factory=dict)


class MonitoringReader:
    """Sums Cloud Monitoring time series over a window.

    Blocking client; callers run it off the event loop.
    """

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["MonitoringReader"]:
        return shared_reader(settings.gcp_billing_credentials)

    def close(self) -> None:
        self.client.transport.close()

    def sum_series(
        self,
        project_id: str,
        metric_filter: str,
        start: dt.datetime,
        end: dt.datetime,
        alignment: dt.timedelta = dt.timedelta(days=1),
        aligner=monitoring_v3.Aggregation.Aligner.ALIGN_SUM,
    ) -> MetricTotals:
        interval = monitoring_v3.TimeInterval(start_time=start.astimezone(), end_time=end.astimezone())
        aggregation = monitoring_v3.Aggregation(alignment_period=alignment, per_series_aligner=aligner)
        results = self.client.list_time_series(
            request={
                "name": f"projects/{project_id}",
                "filter": metric_filter,
                "interval": interval,
                "aggregation": aggregation,
                "view": monitoring_v3.ListTimeSeriesRequest.TimeSeriesView.FULL,
            }
        )
        totals = MetricTotals()
        for series in results:
            totals.labels.update(dict(series.resource.labels))
            for point in series.points:
                totals.value += point.value.int64_value or point.value.double_value or 0
                totals.points += 1
        return totals


@lru_cache(maxsize=1)
def shared_reader(encoded: str) -> Optional[MonitoringReader]:
    """One client (and gRPC channel) per process for a given credential."""
    credentials = load_credentials(encoded)
    if credentials is None:
        return None
    try:
        client = monitoring_v3.MetricServiceClient(credentials=credentials)
    except Exception as e:
        LOG.error(f"Error creating Cloud Monitoring client: {e}")
        return None
    return MonitoringReader(client)


def close_shared_reader(encoded: str) -> None:
    if shared_reader.cache_info().currsize == 0:
        return
    reader = shared_reader(encoded)
    if reader is not None:
        reader.close()
    shared_reader.cache_clear()
