from __future__ import annotations

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    app_port: int = 8000
    app_version: str = "1.0.0"
    debug: bool = True

    # AWS
    mock_aws: bool = True
    aws_default_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_session_token: str = ""
    aws_role_arn: str = ""
    cost_explorer_region: str = "us-east-1"   # Cost Explorer is only served from us-east-1
    compute_optimizer_region: str = "us-east-1"

    # Collector cache (0 = disabled)
    cache_ttl_seconds: int = 4 * 60 * 60

    # Insight engine
    engine_variant: str = "standard"
    top_services_limit: int = 10
    spike_max_results: int = 5
    service_budget_count: int = 3

    # External LLM (empty key = local responder only)
    anthropic_api_key: str = ""
    anthropic_api_url: str = "https://api.anthropic.com/v1/messages"
    anthropic_model: str = "claude-sonnet-4-5"
    anthropic_version: str = "2023-06-01"
    llm_timeout_seconds: float = 30.0
    llm_max_tokens: int = 1024

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Logging
    log_level: str = "INFO"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def llm_enabled(self) -> bool:
        return bool(self.anthropic_api_key)


def get_settings() -> Settings:
    """Return settings, reading env variables fresh on every call.

    No module-level cache: tests and the CLI flip MOCK_AWS / ENGINE_VARIANT
    through the environment and expect the change to apply immediately.
    """
    return Settings()
