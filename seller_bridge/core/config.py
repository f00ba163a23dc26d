from pydantic_settings import BaseSettings
from typing import List, Literal, Optional


class Settings(BaseSettings):
    # Daraz open platform app credentials, nothing works without these
    app_key: Optional[str] = None
    app_secret: Optional[str] = None

    frontend_url: str = "http://localhost:3000"
    cors_origins: List[str] = ["http://localhost:3000"]

    daraz_api_base_url: str = "https://api.daraz.com.bd/rest"
    daraz_auth_url: str = "https://api.daraz.com.bd/oauth/authorize"
    daraz_logo_url: str = "https://img.uxwing.com/wp-content/themes/uxwing/download/brands-social-media/daraz-logo-icon.png"

    # outbound calls
    request_timeout_seconds: float = 30.0
    retry_attempts: int = 3
    retry_backoff_min: float = 1.0
    retry_backoff_max: float = 10.0

    # fan-out across connected sellers
    aggregation_policy: Literal["abort", "partial"] = "partial"
    max_concurrent_account_calls: int = 5
    order_window_days: int = 30

    auto_refresh_tokens: bool = True
    token_refresh_margin_seconds: int = 300
    # Fernet key for tokens held in memory, generated per process when unset
    token_encryption_key: Optional[str] = None

    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8080

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def is_configured(self) -> bool:
        return bool(self.app_key and self.app_secret)


settings = Settings()


def get_settings() -> Settings:
    return settings
