from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_AUTH_TOKEN_SECRET = "local-dev-auth-token-secret-change-me"


class Settings(BaseSettings):
    app_env: str = "local"
    api_port: int = 8000
    log_level: str = "INFO"

    postgres_host: str = "127.0.0.1"
    postgres_port: int = 5432
    postgres_db: str = "support_chat"
    postgres_user: str = "chat_user"
    postgres_password: str = "chat_password"
    database_url_override: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL_OVERRIDE", "DATABASE_URL"),
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_auto_create: bool = False

    auth_token_secret: str = DEFAULT_AUTH_TOKEN_SECRET
    auth_token_ttl_minutes: int = 60 * 24 * 7
    cors_allowed_origins_raw: str = "http://127.0.0.1:5173,http://localhost:5173"
    trusted_hosts_raw: str = "127.0.0.1,localhost"
    force_https: bool = False

    hf_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("HF_API_KEY", "HUGGINGFACE_API_KEY"),
    )
    llm_base_url: str = "https://router.huggingface.co/v1"
    llm_primary_model: str = Field(
        default="Qwen/Qwen2.5-7B-Instruct",
        validation_alias=AliasChoices("LLM_PRIMARY_MODEL", "AI_PRIMARY_MODEL"),
    )
    llm_fallback_model: str = Field(
        default="meta-llama/Llama-3.1-8B-Instruct",
        validation_alias=AliasChoices("LLM_FALLBACK_MODEL", "AI_FALLBACK_MODEL"),
    )
    llm_max_tokens: int = 500
    llm_temperature: float = 0.7
    llm_timeout_seconds: float = 30.0

    assistant_name: str = "Eco-Assistant"
    store_name: str = "EcoPlanner"
    chat_history_limit: int = 20
    handover_sentiment_threshold: int = 2
    chat_rate_limit: int = 30
    chat_rate_window_seconds: int = 60

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def cors_allowed_origins(self) -> list[str]:
        return [
            origin.strip()
            for origin in self.cors_allowed_origins_raw.split(",")
            if origin.strip()
        ]

    @property
    def trusted_hosts(self) -> list[str]:
        return [
            host.strip() for host in self.trusted_hosts_raw.split(",") if host.strip()
        ]

    def validate_security_settings(self) -> None:
        if self.app_env.lower() != "production":
            return

        if self.auth_token_secret == DEFAULT_AUTH_TOKEN_SECRET:
            raise ValueError("AUTH_TOKEN_SECRET must be overridden in production.")
        if len(self.auth_token_secret) < 32:
            raise ValueError(
                "AUTH_TOKEN_SECRET must be at least 32 characters in production."
            )
        if not self.hf_api_key:
            raise ValueError("HF_API_KEY must be configured in production.")
        if not self.cors_allowed_origins:
            raise ValueError(
                "CORS_ALLOWED_ORIGINS_RAW must define explicit origins in production."
            )
        if "*" in self.cors_allowed_origins:
            raise ValueError("Wildcard CORS origin is not allowed in production.")
        if not self.trusted_hosts:
            raise ValueError(
                "TRUSTED_HOSTS_RAW must define explicit hosts in production."
            )
        if "*" in self.trusted_hosts:
            raise ValueError("Wildcard trusted host is not allowed in production.")


@lru_cache
def get_settings() -> Settings:
    return Settings()
