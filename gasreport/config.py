"""Application configuration via environment variables."""

from dataclasses import dataclass
from typing import List

from pydantic_settings import BaseSettings

from gasreport.generation.retry import RetryPolicy

APP_VERSION = "0.1.0"


@dataclass(frozen=True)
class ExternalServiceConfig:
    """Connection details for the generative-language API.

    Passed explicitly into the client so nothing reads the API key
    from the process environment at import time.
    """
    endpoint: str
    api_key: str
    model: str
    temperature: float = 0.4
    timeout_seconds: float = 9.0


class Settings(BaseSettings):
    # Generative-language API
    gemini_api_key: str = ""
    gemini_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.5-flash"
    gemini_temperature: float = 0.4

    # Outbound call policy
    request_timeout_seconds: float = 9.0
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_jitter_seconds: float = 0.5

    # Job store
    job_store_backend: str = "memory"  # "memory" or "supabase"
    job_store_table: str = "reports"
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Background dispatch
    dispatch_mode: str = "local"  # "local", "http" or "eager"
    site_url: str = "http://localhost:8000"
    stale_job_minutes: int = 15

    # Service
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def external_service(self) -> ExternalServiceConfig:
        return ExternalServiceConfig(
            endpoint=self.gemini_endpoint,
            api_key=self.gemini_api_key,
            model=self.gemini_model,
            temperature=self.gemini_temperature,
            timeout_seconds=self.request_timeout_seconds,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay_seconds,
            max_jitter=self.retry_max_jitter_seconds,
            # httpx.Timeout bounds each read, not the whole attempt
            attempt_timeout=self.request_timeout_seconds,
        )


settings = Settings()
