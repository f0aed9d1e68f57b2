from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    # MongoDB settings
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "contact_import"

    # Import settings
    max_file_size_mb: int = 10
    import_max_rows: Optional[int] = None
    import_skip_empty_rows: bool = True
    import_trim_whitespace: bool = True
    inference_sample_rows: int = 10
    import_row_delay_seconds: float = 0.0  # UI pacing only
    import_session_ttl_minutes: int = 60

    # Optional settings
    debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
