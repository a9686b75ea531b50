import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .periods import Period


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def empty_breakdown() -> Dict[str, float]:
    return {"transport": 0.0, "stt": 0.0, "llm": 0.0, "tts": 0.0, "vapi": 0.0}


class VapiCosts(CamelModel):
    total: float = 0.0
    calls: int = 0
    breakdown: Dict[str, float] = Field(default_factory=dict)
    limited_to_14_days: bool = Field(default=False, alias="limitedTo14Days")
    is_real_data: bool = False
    error: Optional[str] = None


class CloudRunCosts(CamelModel):
    total: float = 0.0
    requests: int = 0
    cpu_hours: float = 0.0
    is_real_data: bool = False
    service_name: str = "gps-bot"
    project_id: str = ""


class HetznerCosts(CamelModel):
    total: float = 0.0
    uptime: float = 99.9
    machine_type: str = "Unknown"
    provider: str = "Hetzner"
    specs: str = "N/A"
    ip: str = "N/A"
    monthly_rate: float = 0.0
    is_real_data: bool = False
    last_updated: dt.datetime
    error: Optional[str] = None


class ComputeInstanceCosts(CamelModel):
    total: float = 0.0
    uptime: float = 99.9
    uptime_hours: float = 0.0
    machine_type: str = "e2-medium"
    specs: Optional[str] = None
    hourly_rate: float = 0.0
    is_real_data: bool = False


class CostReport(CamelModel):
    vapi: VapiCosts
    cloud_run: CloudRunCosts
    chatwoot: HetznerCosts
    openclaw: ComputeInstanceCosts
    # sum for the requested period; the name is what the dashboard reads
    total_month: float
    period: Period
    timestamp: dt.datetime
    gcp_billing_account: str
    gcp_projects: Dict[str, str]


class HetznerServerCost(CamelModel):
    id: int
    name: str
    type: str
    description: str
    specs: str
    location: str
    location_desc: str
    ip: str
    status: str
    created: str
    price_hourly: float
    price_monthly: float
    current_month_cost: float
    traffic_included_gb: int = Field(alias="trafficIncludedGB")
    traffic_used_gb: float = Field(alias="trafficUsedGB")


class HetznerInventory(CamelModel):
    servers: List[HetznerServerCost] = Field(default_factory=list)
    total_monthly: float = 0.0
    total_current_month: float = 0.0
    currency: str = "EUR"
    last_updated: dt.datetime
    error: Optional[str] = None


class LinkedApp(CamelModel):
    name: str
    description: str
    url: str
    icon: str


class LoginRequest(BaseModel):
    username: str
    password: str
