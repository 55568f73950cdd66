from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 86400  # 1 day
    clock_skew_seconds: int = 30
    # Fixed-window throttling per "login:<email>" / "reset:<email>" key
    login_window_seconds: int = 60
    login_max_per_window: int = 5
    reset_window_seconds: int = 60
    reset_max_per_window: int = 5
    lockout_threshold: int = 5
    lockout_minutes: int = 15
    reset_token_expire_minutes: int = 30
    password_min_length: int = 8
    # PostgREST endpoint backing the student/faculty directory
    postgrest_url: str = "http://localhost:3000"
    postgrest_api_key: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    log_level: str = "INFO"

    @field_validator("jwt_secret")
    @classmethod
    def jwt_secret_min_length(cls, v: str) -> str:
        if len(v) < 32:
            raise ValueError("jwt_secret must be at least 32 characters")
        return v

    model_config = {"env_file": ".env"}


settings = Settings()
