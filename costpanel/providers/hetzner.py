import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..config import Settings
from ..periods import DateRange, Period, month_start
from ..schemas import HetznerCosts, HetznerInventory, HetznerServerCost
from ..upstream import JsonFetcher, UpstreamError

LOG = logging.getLogger(__name__)

GIB = 1024 ** 3


def parse_created(value: str) -> dt.datetime:
    """Hetzner timestamps are UTC ISO strings; convert to naive local time."""
    created = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if created.tzinfo is None:
        return created
    return created.astimezone().replace(tzinfo=None)


def _next_month(moment: dt.datetime) -> dt.datetime:
    first = month_start(moment)
    if first.month == 12:
        return first.replace(year=first.year + 1, month=1)
    return first.replace(month=first.month + 1)


def _months_between(earlier: dt.datetime, later: dt.datetime) -> int:
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def prorate(start: dt.datetime, end: dt.datetime, hourly: float, monthly: float) -> float:
    """Hetzner bills hourly up to the monthly cap."""
    hours = max((end - start).total_seconds() / 3600, 0.0)
    return min(hours * hourly, monthly)


def period_cost(created: dt.datetime, rng: DateRange, hourly: float, monthly: float) -> float:
    effective_start = max(created, rng.start)
    if effective_start >= rng.end:
        return 0.0
    if rng.period is not Period.ALL:
        return prorate(effective_start, rng.end, hourly, monthly)

    current_month = month_start(rng.end)
    if effective_start >= current_month:
        return prorate(effective_start, rng.end, hourly, monthly)
    first_month_end = _next_month(effective_start)
    cost = prorate(effective_start, first_month_end, hourly, monthly)
    cost += _months_between(first_month_end, current_month) * monthly
    cost += prorate(current_month, rng.end, hourly, monthly)
    return cost


def location_price(server: Dict[str, Any]) -> Tuple[float, float]:
    """Gross (hourly, monthly) EUR price for the server's own location."""
    prices = server["server_type"].get("prices") or []
    location = server.get("datacenter", {}).get("location", {}).get("name")
    chosen = next((p for p in prices if p.get("location") == location), prices[0] if prices else None)
    if chosen is None:
        return 0.0, 0.0
    return float(chosen["price_hourly"]["gross"]), float(chosen["price_monthly"]["gross"])


def _ipv4(server: Dict[str, Any]) -> Optional[str]:
    return ((server.get("public_net") or {}).get("ipv4") or {}).get("ip")


def select_server(servers: List[Dict[str, Any]], name: str, ip: str) -> Optional[Dict[str, Any]]:
    for server in servers:
        if server.get("name") == name or _ipv4(server) == ip:
            return server
    return servers[0] if servers else None


def _unavailable(now: dt.datetime, error: Optional[str] = None) -> HetznerCosts:
    if error:
        return HetznerCosts(machine_type="Error", specs="Error loading", last_updated=now, error=error)
    return HetznerCosts(last_updated=now)


async def _list_servers(settings: Settings, fetcher: JsonFetcher) -> List[Dict[str, Any]]:
    data = await fetcher.get_json(f"{settings.hetzner_api_base}/servers", token=settings.hetzner_api_token)
    if not isinstance(data, dict):
        raise UpstreamError("Hetzner returned an unexpected payload")
    return data.get("servers") or []


async def fetch_costs(rng: DateRange, settings: Settings, fetcher: JsonFetcher) -> HetznerCosts:
    now = dt.datetime.now()
    if not settings.hetzner_api_token:
        LOG.warning("HETZNER_API_TOKEN not configured")
        return _unavailable(now)

    try:
        servers = await _list_servers(settings, fetcher)
        server = select_server(servers, settings.hetzner_server_name, settings.hetzner_server_ip)
        if server is None:
            return _unavailable(now)

        hourly, monthly = location_price(server)
        cost = period_cost(parse_created(server["created"]), rng, hourly, monthly)
        server_type = server["server_type"]
        return HetznerCosts(
            total=cost * settings.eur_to_usd,
            machine_type=server_type["name"].upper(),
            specs=f"{server_type['cores']} vCPU, {server_type['memory']:g}GB RAM",
            ip=_ipv4(server) or settings.hetzner_server_ip,
            monthly_rate=monthly * settings.eur_to_usd,
            is_real_data=True,
            last_updated=now,
        )
    except UpstreamError as e:
        LOG.error(f"Error fetching Hetzner costs: {e}")
        return _unavailable(now, str(e))
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        LOG.error(f"Unexpected Hetzner server payload: {e!r}")
        return _unavailable(now, "Invalid response")


def server_cost(server: Dict[str, Any], now: dt.datetime) -> HetznerServerCost:
    server_type = server["server_type"]
    location = server["datacenter"]["location"]
    hourly, monthly = location_price(server)
    created = parse_created(server["created"])
    traffic_used = (server.get("ingoing_traffic") or 0) + (server.get("outgoing_traffic") or 0)
    return HetznerServerCost(
        id=server["id"],
        name=server["name"],
        type=server_type["name"].upper(),
        description=server_type.get("description", ""),
        specs=f"{server_type['cores']} vCPU, {server_type['memory']:g}GB RAM, {server_type['disk']}GB SSD",
        location=location["name"],
        location_desc=location.get("description", ""),
        ip=_ipv4(server) or "N/A",
        status=server.get("status", "unknown"),
        created=server["created"],
        price_hourly=hourly,
        price_monthly=monthly,
        current_month_cost=prorate(max(created, month_start(now)), now, hourly, monthly),
        traffic_included_gb=round((server.get("included_traffic") or 0) / GIB),
        traffic_used_gb=round(traffic_used / GIB * 100) / 100,
    )


async def inventory(settings: Settings, fetcher: JsonFetcher, now: Optional[dt.datetime] = None) -> HetznerInventory:
    """Per-server breakdown in the provider's own currency."""
    now = now or dt.datetime.now()
    if not settings.hetzner_api_token:
        return HetznerInventory(last_updated=now, error="HETZNER_API_TOKEN not configured")

    try:
        servers = [server_cost(s, now) for s in await _list_servers(settings, fetcher)]
    except UpstreamError as e:
        LOG.error(f"Hetzner inventory failed: {e}")
        return HetznerInventory(last_updated=now, error=f"Hetzner {e}")
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        LOG.error(f"Unexpected Hetzner server payload: {e!r}")
        return HetznerInventory(last_updated=now, error="Error fetching Hetzner data")

    return HetznerInventory(
        servers=servers,
        total_monthly=sum(s.price_monthly for s in servers),
        total_current_month=sum(s.current_month_cost for s in servers),
        last_updated=now,
    )
