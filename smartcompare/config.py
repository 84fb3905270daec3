"""Application configuration using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # App Settings
    debug: bool = False
    log_level: str = "INFO"
    log_dir: str = "logs"
    service_name: str = "smartcompare"
    app_host: str = "0.0.0.0"
    app_port: int = 8001

    # ==========================================================================
    # Price History Settings
    # ==========================================================================
    history_backend: str = "memory"  # "memory" or "redis"
    history_storage_key: str = "smartcompare_price_history_v1"
    history_dedupe_seconds: int = 3600  # Drop points closer than this to the latest one
    history_seed_min_points: int = 5  # Series shorter than this get seeded
    history_seed_days: int = 30
    history_seed_volatility: float = 0.05  # Full swing, i.e. +/-2.5% per step
    history_seed_floor: float = 0.5  # Seeded prices never drop below 50% of current

    # Trend classification band (relative to the reference price)
    trend_epsilon: float = 0.01

    # ==========================================================================
    # Reconciliation Settings
    # ==========================================================================
    repair_trust_score: int = 85
    discovery_trust_score: int = 80
    placeholder_shipping: str = "Check Site"
    default_currency: str = "USD"

    # Manual refresh price perturbation
    refresh_min_factor: float = 0.9
    refresh_max_factor: float = 1.1

    # ==========================================================================
    # AI & LLM Configuration
    # ==========================================================================
    openai_api_key: str = ""

    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.3  # Lower = more deterministic
    llm_max_tokens: int = 2000
    llm_timeout_seconds: float = 30.0

    # LLM Caching
    llm_cache_enabled: bool = False
    llm_cache_ttl_seconds: int = 3600

    # Feature Flags
    ai_deal_discovery_enabled: bool = True
    ai_analysis_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
