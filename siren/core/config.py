from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict  # type: ignore[import-not-found]


class Settings(BaseSettings):
    app_env: str = "local"
    app_name: str = "siren"
    port: int = 8080

    mysql_host: str = "127.0.0.1"
    mysql_port: int = 3306
    mysql_user: str = "siren_user"
    mysql_password: str = "siren_pass"
    mysql_db: str = "siren"
    # Overrides the MySQL URL when set (e.g. "sqlite:///./siren.db" for local runs)
    database_url: str | None = None

    # Auth codes (TTL is fixed server-side, not per request)
    auth_code_ttl_minutes: int = 10
    auth_code_length: int = 6
    auth_code_max_attempts: int = 20
    auth_code_retention_hours: int = 24 * 7  # 7 days
    auth_code_sweep_interval_seconds: float = 30.0
    auth_code_sweep_enabled: bool = True
    auth_code_hmac_secret: str = "change_me"

    # Relationship graph
    allow_duplicate_contacts: bool = True

    # Push gateway (APNs/FCM relay)
    push_gateway_url: str = "http://localhost:8088/push"
    push_gateway_api_key: str | None = None
    push_timeout_seconds: float = 4.0
    push_alert_title: str = "SIREN RING EMERGENCY"
    push_default_message: str = "Emergency alert triggered! Please check on me immediately."

    # Alert dispatch
    alert_max_attempts: int = 3
    alert_backoff_base_seconds: float = 0.5
    alert_max_workers: int = 64  # pool is sized to the recipient count up to this cap
    alert_debounce_seconds: int = 0  # 0 disables debouncing

    # Redis / CORS / Client
    redis_url: str = "redis://localhost:6379/0"
    cors_origins: list[str] | str = "*"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str] | str:
        if isinstance(v, str):
            if v == "*":
                return "*"
            if "," in v:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
            return [v.strip()] if v.strip() else "*"
        if isinstance(v, list):
            return v
        return "*"

    client_id_header: str = "X-Client-Id"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        # Force TCP/IP connection by adding unix_socket= parameter
        return (
            f"mysql+pymysql://{self.mysql_user}:{self.mysql_password}"
            f"@{self.mysql_host}:{self.mysql_port}/{self.mysql_db}?charset=utf8mb4&unix_socket="
        )


settings = Settings()
