import datetime as dt
import logging
from typing import Any, List, Tuple

from ..config import Settings
from ..periods import DateRange
from ..schemas import VapiCosts, empty_breakdown
from ..upstream import JsonFetcher, UpstreamError

LOG = logging.getLogger(__name__)

# The VAPI plan only keeps 14 days of call history
MAX_HISTORY = dt.timedelta(days=14)
CALL_PAGE_LIMIT = 1000


def query_window(rng: DateRange) -> Tuple[dt.datetime, bool]:
    """Return the start actually queried and whether the history cap cut the range."""
    effective_start = max(rng.start, rng.end - MAX_HISTORY)
    return effective_start, effective_start > rng.start


def _iso_utc(moment: dt.datetime) -> str:
    return moment.astimezone(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def summarize_calls(calls: List[Any]) -> Tuple[float, dict]:
    total = 0.0
    breakdown = empty_breakdown()
    for call in calls:
        total += float(call.get("cost") or 0)
        parts = call.get("costBreakdown") or {}
        for key in breakdown:
            breakdown[key] += float(parts.get(key) or 0)
    return total, breakdown


async def fetch_costs(rng: DateRange, settings: Settings, fetcher: JsonFetcher) -> VapiCosts:
    if not settings.vapi_api_key:
        return VapiCosts()

    start, limited = query_window(rng)
    params = {
        "limit": str(CALL_PAGE_LIMIT),
        "createdAtGt": _iso_utc(start),
        "createdAtLt": _iso_utc(rng.end),
    }
    try:
        calls = await fetcher.get_json(
            f"{settings.vapi_api_base}/call", token=settings.vapi_api_key, params=params
        )
    except UpstreamError as e:
        LOG.error(f"VAPI call listing failed: {e}")
        return VapiCosts(limited_to_14_days=limited, error=str(e))

    if not isinstance(calls, list):
        LOG.error(f"VAPI returned non-list response: {str(calls)[:200]}")
        return VapiCosts(limited_to_14_days=limited, error="Invalid response")

    try:
        total, breakdown = summarize_calls(calls)
    except (AttributeError, TypeError, ValueError) as e:
        LOG.error(f"VAPI call records malformed: {e}")
        return VapiCosts(limited_to_14_days=limited, error="Invalid response")

    return VapiCosts(
        total=total,
        calls=len(calls),
        breakdown=breakdown,
        limited_to_14_days=limited,
        is_real_data=True,
    )
