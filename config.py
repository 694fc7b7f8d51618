from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Application Settings
    PROJECT_NAME: str = "Realtime Notification Backend"
    DEBUG: bool = True

    # Database Configuration (SQLite file under ./data by default)
    DATABASE_URL: str = "sqlite:///./data/app.db"

    # Session Settings
    SESSION_SECRET: str = "your-secret-key"
    # Comma-separated list of previous secrets still accepted when verifying session cookies
    SESSION_ADDITIONAL_SECRETS: str | None = None
    SESSION_COOKIE_NAME: str = "sid"
    SESSION_MAX_AGE_SECONDS: int = 24 * 60 * 60
    SESSION_COOKIE_SECURE: bool = False
    SESSION_COOKIE_SAMESITE: str = "lax"

    # API Settings
    API_V1_STR: str = "/api/v1"
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"

    # Realtime Settings
    WS_PATH: str = "/ws"
    ADMIN_ROLE: str = "admin"
    # Event bus types forwarded to every connected administrator
    ADMIN_NOTIFY_EVENTS: str = "user.registered,order.created"
    NOTIFY_QUEUE_MAXSIZE: int = 1000
    # Close the previous connection when the same user connects again
    WS_CLOSE_SUPERSEDED: bool = False

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def admin_notify_events(self) -> set[str]:
        return {e.strip() for e in self.ADMIN_NOTIFY_EVENTS.split(",") if e.strip()}

    def _post_init(self):
        # Enforce a real session secret outside debug
        if not self.DEBUG:
            if self.SESSION_SECRET.lower() in {"your-secret-key", "change-me", "changeme", "default", "secret"}:
                raise ValueError("Insecure SESSION_SECRET value detected; set it via environment")

settings = Settings()
settings._post_init()
