from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator

SCENARIO_FALLBACK_MODES = ("static", "mock", "error")


class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'fbr_user'
    POSTGRES_PASSWORD: str = 'fbr_pass'
    POSTGRES_DB: str = 'fbr_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None  # Overrides the POSTGRES_* settings (tests, sqlite)

    # JWT settings
    APP_SECRET_STRING: str = 'your-super-secret-key-here-change-in-production-2024'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Scenario resolver
    SCENARIO_STORE_FALLBACK: str = 'static'  # static | mock | error
    SEED_SCENARIOS_ON_STARTUP: bool = True

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", "SEED_SCENARIOS_ON_STARTUP", mode="before")
    @classmethod
    def parse_bool(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("SCENARIO_STORE_FALLBACK", mode="before")
    @classmethod
    def parse_fallback(cls, v):
        value = str(v).lower().strip('"').strip("'")
        if value not in SCENARIO_FALLBACK_MODES:
            raise ValueError(
                f"SCENARIO_STORE_FALLBACK must be one of: {', '.join(SCENARIO_FALLBACK_MODES)}"
            )
        return value

settings = Settings()
