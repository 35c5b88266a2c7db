"""Configuration and environment settings for the Receipts Dashboard."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings for the Receipts Dashboard."""

    groq_api_key: str = ""
    scan_agent: str = "groq"
    scan_model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    scan_temperature: float = 0.1
    scan_max_completion_tokens: int = 150
    database_url: str = "sqlite:///dashboard.db"
    s3_endpoint_url: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    s3_region: str = "us-east-1"
    s3_bucket: str = "receipts"
    s3_public_base_url: str | None = None
    max_receipt_bytes: int = 10 * 1024 * 1024
    log_dir: str = "logs"
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


def get_settings() -> "Settings":
    """Return an instance of the application settings."""
    return Settings()
