import logging
import os
from typing import List

import httpx
from fastapi import APIRouter, Depends, FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .aggregate import CostAggregator
from .apps import LINKED_APPS
from .auth import AuthMiddleware
from .auth import router as auth_router
from .config import Settings, get_settings
from .metrics import record_report, scrape_metrics
from .periods import Period
from .providers import hetzner
from .providers.gcp_monitoring import close_shared_reader
from .schemas import CostReport, HetznerInventory, LinkedApp
from .upstream import JsonFetcher, ResponseCache

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"), format="[costpanel] %(message)s")
LOG = logging.getLogger(__name__)

response_cache = ResponseCache(ttl_seconds=get_settings().cache_seconds)


async def get_fetcher(settings: Settings = Depends(get_settings)):
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        yield JsonFetcher(client, response_cache)


def get_aggregator(
    settings: Settings = Depends(get_settings), fetcher: JsonFetcher = Depends(get_fetcher)
) -> CostAggregator:
    return CostAggregator.from_settings(settings, fetcher)


costs = APIRouter()


@costs.get("/costs", response_model=CostReport)
async def get_costs(period: Period = Period.MONTH, aggregator: CostAggregator = Depends(get_aggregator)):
    try:
        report = await aggregator.collect(period)
    except Exception:
        LOG.exception("Error fetching costs")
        return JSONResponse(status_code=500, content={"error": "Error fetching costs"})
    record_report(report)
    return report


@costs.get("/costs/hetzner", response_model=HetznerInventory)
async def get_hetzner_costs(settings: Settings = Depends(get_settings), fetcher: JsonFetcher = Depends(get_fetcher)):
    return await hetzner.inventory(settings, fetcher)


app = FastAPI(title="GPS Estudio Dashboard API", version="1.0.0")

app.add_middleware(AuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(costs, prefix="/api")
app.include_router(costs, include_in_schema=False)
app.include_router(auth_router)


@app.on_event("shutdown")
def close_monitoring():
    close_shared_reader(get_settings().gcp_billing_credentials)


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/apps", response_model=List[LinkedApp])
def list_apps():
    return LINKED_APPS


@app.get("/metrics")
def metrics():
    output, ctype = scrape_metrics()
    return Response(content=output, media_type=ctype)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
