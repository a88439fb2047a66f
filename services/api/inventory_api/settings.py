from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Rate limiting (in-memory, per process). Limits apply only to paths under RATE_LIMIT_PATH_PREFIX.
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_MS: int = 15 * 60 * 1000  # 15 min fixed window
    RATE_LIMIT_MAX_REQUESTS: int = 100  # per key per window
    RATE_LIMIT_MESSAGE: str = "Too many requests, please try again later."
    RATE_LIMIT_KEY_STRATEGY: str = "address"  # address | forwarded | address_route
    RATE_LIMIT_PATH_PREFIX: str = "/api"  # empty = every path
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = 60.0  # drop expired buckets this often


settings = Settings()
