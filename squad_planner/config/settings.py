from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Used for system messages written on behalf of the app

    # Row accessor retry policy (transport failures only)
    read_attempts: int = 2
    write_attempts: int = 1
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 10.0

    # Client query cache
    query_stale_seconds: float = 30.0

    # Sessions
    checkin_lead_minutes: int = 30
    default_session_duration_minutes: int = 120
    default_auto_confirm_threshold: int = 3
    upcoming_sessions_limit: int = 20

    # Referrals
    referral_code_suffix: str = "-SP26"

    # App
    app_name: str = "squad-planner-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
