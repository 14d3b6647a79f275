from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "LMS Plugin Host"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./plugin_host.db"

    # Plugin runtime settings
    host_version: int = 2024100700
    plugins_path: Path = Path("plugins")
    manifest_filename: str = "version.json"
    plugin_cache_ttl: int = 3600  # seconds
    default_context_id: int = 1  # system context

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
