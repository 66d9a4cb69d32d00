from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    PORTAL_BASE_URL: str = "https://smallbizworkspace-portal-backend.vercel.app"
    PORTAL_ADMIN_KEY: str | None = None
    PORTAL_TIMEOUT_SECONDS: float = 10.0

    BUSINESS_TIMEZONE: str = "America/Los_Angeles"
    WEEK_FIRST_WEEKDAY: int = 0  # 0=Monday ... 6=Sunday

    DASHBOARD_CACHE_TTL_SECONDS: float = 60.0
    DASHBOARD_CACHE_MAX_ENTRIES: int = 32

    ESTIMATE_SYNC_ENABLED: bool = False
    ESTIMATE_SYNC_MAX_COUNT: int = 40
    ESTIMATE_SYNC_INTERVAL_SECONDS: float = 90.0

    DEEP_LINK_SCHEME: str = "smallbizworkspace"

    STORE_PROVIDER: str = "memory"  # "memory" | "json"
    DATA_DIR: str = "./data"


settings = Settings()
