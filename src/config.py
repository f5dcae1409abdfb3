from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    supabase_url: str
    supabase_service_role_key: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    operator_token_expiration_minutes: int = 60
    log_level: str = "INFO"
    encryption_key: str
    salla_webhook_secret: str | None = None
    salla_webhook_signature_header: str = "X-Salla-Signature"
    ga4_collect_url: str = "https://www.google-analytics.com/mp/collect"
    ga4_debug_url: str = "https://www.google-analytics.com/debug/mp/collect"
    ga4_timeout_seconds: float = 5.0
    ga4_default_currency: str = "SAR"
    dispatch_max_workers: int = 4
    dispatch_queue_size: int = 100

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
