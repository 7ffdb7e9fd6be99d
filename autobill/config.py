# autobill/config.py
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

REQUIRED_SETTINGS = {
    "airtable_api_key": "AIRTABLE_API_KEY",
    "airtable_base_id": "AIRTABLE_BASE_ID",
    "sellsy_client_id": "SELLSY_CLIENT_ID",
    "sellsy_client_secret": "SELLSY_CLIENT_SECRET",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # --- Airtable ---
    airtable_api_key: Optional[str] = Field(default=None, repr=False)
    airtable_base_id: Optional[str] = None
    airtable_api_url: str = "https://api.airtable.com/v0"
    subscriptions_table: str = "Abonnements"
    services_table: str = "service_sellsy"
    subscriptions_view: Optional[str] = "Grid view"
    # "record_id" reads linked services by Airtable record id,
    # "sellsy_id" looks them up by their Sellsy reference.
    service_lookup: Literal["record_id", "sellsy_id"] = "record_id"

    # --- Sellsy ---
    sellsy_client_id: Optional[str] = None
    sellsy_client_secret: Optional[str] = Field(default=None, repr=False)
    sellsy_api_url: str = "https://api.sellsy.com/v2"
    sellsy_token_url: str = "https://api.sellsy.com/oauth2/token"
    token_refresh_margin_seconds: int = 300  # 5 minutes

    # --- Invoicing ---
    payment_method_labels: List[str] = ["gocardless", "prélèvement"]
    default_tax_rate: float = 20.0
    billing_timezone: str = "Europe/Paris"

    # --- HTTP ---
    http_timeout_seconds: float = 30.0
    retry_attempts: int = 3
    retry_delay_seconds: float = 2.0

    # --- Logging ---
    log_level: str = "INFO"
    log_json: bool = False

    def missing_required(self) -> List[str]:
        return [env_name for attr, env_name in REQUIRED_SETTINGS.items() if not getattr(self, attr)]


@lru_cache
def get_settings() -> Settings:
    return Settings()
