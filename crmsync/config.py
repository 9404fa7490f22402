"""
Centralized settings using Pydantic Settings (v2).
Secrets (the HubSpot private app token) come from the environment or .env, never code.
"""

from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # ---- HubSpot ----
    HUBSPOT_API_KEY: str | None = None
    HUBSPOT_BASE_URL: str = Field(default="https://api.hubapi.com")
    HUBSPOT_TIMEOUT_S: float = 20.0
    DEFAULT_NOTE_BODY: str = Field(
        default="Contact captured - Web",
        description="Note text used when the caller sends no notes",
    )
    CONTACT_SINGLE_FLIGHT: bool = Field(
        default=False,
        description="Coalesce concurrent resolves for the same email into one remote create",
    )

    # ---- Observability ----
    OTEL_EXPORTER_OTLP_ENDPOINT: str | None = None  # set to export traces
    SERVICE_NAME: str = Field(default="crm-upsert")

    # ---- PII Redaction ----
    PII_REDACTION_ENABLED: bool = Field(default=True)

    # ---- Logging ----
    LOG_LEVEL: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@dataclass(frozen=True)
class HubSpotConfig:
    """Everything a HubSpot client needs, passed in explicitly instead of read from globals."""

    api_key: str | None
    base_url: str = "https://api.hubapi.com"
    timeout_s: float = 20.0
    default_note_body: str = "Contact captured - Web"

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_settings(cls, s: Settings) -> "HubSpotConfig":
        return cls(
            api_key=s.HUBSPOT_API_KEY,
            base_url=s.HUBSPOT_BASE_URL.rstrip("/"),
            timeout_s=s.HUBSPOT_TIMEOUT_S,
            default_note_body=s.DEFAULT_NOTE_BODY,
        )


settings = Settings()
