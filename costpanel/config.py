from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # VAPI (call automation)
    vapi_api_key: str = ""
    vapi_api_base: str = "https://api.vapi.ai"

    # Hetzner Cloud (Chatwoot VM)
    hetzner_api_token: str = ""
    hetzner_api_base: str = "https://api.hetzner.cloud/v1"
    hetzner_server_name: str = "ubuntu-2gb-ash-1"
    hetzner_server_ip: str = "178.156.255.182"
    eur_to_usd: float = 1.08

    # GCP: Cloud Run (Sofia bot) and the OpenClaw gateway VM
    gcp_billing_credentials: str = ""  # base64 service account JSON
    gcp_billing_account_id: str = "01F2CB-329AFF-39493F"
    gcp_cloud_run_project: str = "gps-bot-481315"
    gcp_compute_project: str = ""  # empty means same project as Cloud Run
    compute_instance_name: str = "openclaw-gateway"
    compute_machine_type: str = "e2-medium"
    compute_specs: str = "2 vCPU, 4GB RAM"
    compute_hourly_rate: float = 0.033503

    # Dashboard login
    admin_username: str = "admin"
    admin_password: str = "gps2026"
    app_env: str = "development"

    cache_seconds: int = 300
    http_timeout_seconds: float = 30.0
    cors_origins: str = "*"  # Comma-separated

    model_config = {"env_file": ".env", "extra": "ignore", "frozen": True}

    @property
    def production(self) -> bool:
        return self.app_env == "production"

    @property
    def compute_project(self) -> str:
        return self.gcp_compute_project or self.gcp_cloud_run_project

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
