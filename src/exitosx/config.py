"""Exit OSx application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Global application settings loaded from environment / .env file."""

    # General
    exitosx_env: str = "development"
    exitosx_debug: bool = True
    # Service key for cron / admin routes (X-API-Key header)
    exitosx_api_key: str = "changeme-generate-a-real-key"
    app_base_url: str = "http://localhost:8000"

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "exitosx"
    postgres_password: str = "exitosx_dev_password"
    postgres_db: str = "exitosx"
    database_pool_size: int = 10
    database_max_overflow: int = 20
    # Log SQL statements
    database_echo: bool = False

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Sessions
    session_ttl_hours: int = 24 * 7
    session_cookie_name: str = "exitosx_session"

    # ── Secrets at rest ───────────────────────────────────────────────────
    # 64 hex chars (32 bytes) used for AES-256-GCM encryption of TOTP secrets.
    totp_encryption_key: str = ""
    # base64-encoded 32-byte key for OAuth token encryption.
    token_encryption_key: str = ""

    # LLM
    llm_provider: str = "openai"  # openai | anthropic | google | ollama
    llm_model: str = "gpt-4o-mini"
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    google_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # QuickBooks
    quickbooks_client_id: str = ""
    quickbooks_client_secret: str = ""
    quickbooks_environment: str = "sandbox"  # sandbox | production
    quickbooks_redirect_uri: str = "http://localhost:8000/api/integrations/quickbooks/callback"
    quickbooks_webhook_verifier_token: str = ""

    @property
    def quickbooks_api_base(self) -> str:
        if self.quickbooks_environment == "production":
            return "https://quickbooks.api.intuit.com"
        return "https://sandbox-quickbooks.api.intuit.com"

    # Background jobs
    scheduler_enabled: bool = True
    snapshot_refresh_hour: int = 3
    quickbooks_sync_interval_hours: int = 12

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
