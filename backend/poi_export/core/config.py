from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # API
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "POI Export"
    VERSION: str = "0.1.0"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    @field_validator("BACKEND_CORS_ORIGINS", "EXPORT_API_KEYS", mode="before")
    @classmethod
    def split_comma_list(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    # Database
    DATABASE_URL: str = "sqlite:///./poi_export.db"
    AUTO_CREATE_TABLES: bool = True

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Export
    EXPORT_ROUTE: str = "/poi-export"
    EXPORT_PAGE_SIZE: int = Field(100, gt=0)
    EXPORT_PAGE_TIMEOUT_SECONDS: Optional[float] = None  # None waits forever
    EXPORT_FILENAME_PREFIX: str = "POI-EXPORT"

    # Auth - empty list disables permission checks
    EXPORT_API_KEYS: List[str] = []

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None


settings = Settings()
