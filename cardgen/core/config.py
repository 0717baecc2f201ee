from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Google AI credentials: primary key plus up to nine numbered fallbacks
    google_ai_key: str = ""
    google_ai_key_2: str = ""
    google_ai_key_3: str = ""
    google_ai_key_4: str = ""
    google_ai_key_5: str = ""
    google_ai_key_6: str = ""
    google_ai_key_7: str = ""
    google_ai_key_8: str = ""
    google_ai_key_9: str = ""
    google_ai_key_10: str = ""

    @property
    def credentials(self) -> list[str]:
        """Configured API keys in priority order, blanks skipped."""
        keys = [self.google_ai_key] + [getattr(self, f"google_ai_key_{n}") for n in range(2, 11)]
        return [k.strip() for k in keys if k and k.strip()]

    # Provider (ai_vendor is a key of vendor_adapters.ADAPTER_REGISTRY)
    ai_vendor: str = "gemini"
    gemini_model: str = "gemini-2.5-flash"
    provider_timeout_seconds: float = 60.0

    # Retry / backoff (milliseconds)
    max_retries: int = 3
    base_retry_delay_ms: int = 1000
    max_retry_delay_ms: int = 10_000
    retry_jitter_ms: int = 1000

    # Generation limits
    default_num_questions: int = 10
    min_num_questions: int = 1
    max_num_questions: int = 50
    distractor_chunk_size: int = 10
    max_distractor_cards: int = 200

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated

    # Inbound rate limit (slowapi syntax)
    rate_limit: str = "30/minute"

    # Peers whose X-Forwarded-For is trusted (comma-separated, "*" for any)
    forwarded_allow_ips: str = "127.0.0.1"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if not settings.credentials:
        errors.append("GOOGLE_AI_KEY (or GOOGLE_AI_KEY_2 ... GOOGLE_AI_KEY_10) must be set")

    if settings.min_num_questions < 1 or settings.max_num_questions < settings.min_num_questions:
        errors.append("MIN_NUM_QUESTIONS / MAX_NUM_QUESTIONS must describe a non-empty range starting at 1 or above")

    if settings.distractor_chunk_size < 1:
        errors.append("DISTRACTOR_CHUNK_SIZE must be at least 1")

    if settings.max_retries < 1:
        errors.append("MAX_RETRIES must be at least 1")

    if settings.app_env == "production":
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
