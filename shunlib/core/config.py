from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Default database for connect() when no path is given
    DATABASE_PATH: str = ":memory:"
    # Seconds sqlite waits on a locked database before raising "database is locked"
    DB_BUSY_TIMEOUT: float = 5.0
    DB_FOREIGN_KEYS: bool = True

    # Bind values may hold user data; keep them out of debug logs unless asked
    SQL_LOG_BIND_VALUES: bool = False
    SQL_TEMPLATE_PREVIEW_CHARS: int = 500

    model_config = SettingsConfigDict(
        env_prefix="SHUNLIB_", env_file=".env", extra="ignore"
    )


settings = Settings()
