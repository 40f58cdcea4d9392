from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Shared rate-limit store. When unset, every admission check fails open.
    REDIS_URL: str | None = None
    REDIS_SOCKET_TIMEOUT_SECONDS: float = 0.5  # bounds each check; callers never retry

    # Trusted lesson root; request paths are resolved beneath it
    CONTENT_ROOT: str = "content/lessons"

    # Rate limiting (Redis sorted sets, shared across instances)
    RATE_LIMIT_DEFAULT_MAX_REQUESTS: int = 30
    RATE_LIMIT_DEFAULT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_LESSONS_PER_MINUTE: int = 60


settings = Settings()
