"""Configuration management for the DreamSaver service."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = Field(default="DreamSaver")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="postgresql+psycopg://dreamsaver:dreamsaver@db:5432/dreamsaver")
    transaction_timeout_seconds: int = Field(default=20)

    currency: str = Field(default="PKR")

    aws_region: str = Field(default="us-east-1")
    s3_endpoint_url: str | None = Field(default=None)
    audit_log_bucket: str = Field(default="dreamsaver-audit-logs")
    audit_log_prefix: str = Field(default="audit/records")
    audit_log_sample_rate: float = Field(default=1.0)

    log_level: str = Field(default="INFO")
    log_config_path: str | None = Field(default=None)

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    kafka_bootstrap_servers: str = Field(default="kafka:9092")
    goal_events_topic: str = Field(default="goal-events")
    enable_goal_events: bool = Field(default=True)

    payment_provider: str = Field(default="STRIPE")
    payment_gateway_url: str = Field(default="http://localhost:9020")
    payment_gateway_api_key: str = Field(default="sk_test_dreamsaver")
    payment_gateway_timeout_seconds: float = Field(default=10.0)

    geocoder_url: str = Field(default="https://nominatim.openstreetmap.org")
    geocoder_timeout_seconds: float = Field(default=5.0)
    geocoder_user_agent: str = Field(default="dreamsaver-backend/0.1")
    default_country: str = Field(default="Pakistan")

    jwt_algorithm: str = Field(default="HS256")
    jwt_secret_key: str = Field(default="dev-only-change-me")
    access_token_expire_minutes: int = Field(default=60)
    demo_user_password: str = Field(default="changeme")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
