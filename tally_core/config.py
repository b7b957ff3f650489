"""
Tally Core - Configuration Management

Centralized configuration loaded from environment variables and an
optional .env file:
- Environment-specific settings (dev/staging/prod)
- Logging output
- Workpaper storage location
- Document extraction confidence thresholds
"""

from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings
from functools import lru_cache
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.
    """

    # ==================== ENVIRONMENT ====================
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (auto-enabled in development)"
    )

    # ==================== OBSERVABILITY ====================
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )
    LOG_JSON: bool = Field(
        default=True,
        description="Emit JSON log lines (plain text when False)"
    )
    SERVICE_NAME: str = Field(
        default="tally-core",
        description="Service name attached to every log line"
    )

    # ==================== STORAGE ====================
    STORAGE_DIR: str = Field(
        default="data/workpapers",
        description="Directory for the JSON file workpaper store"
    )
    STORAGE_NAMESPACE_PREFIX: str = Field(
        default="",
        description="Optional prefix prepended to every storage namespace"
    )

    # ==================== EXTRACTION ====================
    EXTRACTION_ACCEPT_CONFIDENCE: float = Field(
        default=0.8,
        description="Minimum field confidence to accept an extracted document"
    )
    EXTRACTION_REVIEW_CONFIDENCE: float = Field(
        default=0.5,
        description="Minimum field confidence to send a document for review instead of rejecting it"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    # ==================== COMPUTED PROPERTIES ====================

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def debug_enabled(self) -> bool:
        """Enable debug in development or when explicitly set"""
        return self.DEBUG or self.is_development

    def namespace(self, name: str) -> str:
        """Apply STORAGE_NAMESPACE_PREFIX to a storage namespace."""
        return f"{self.STORAGE_NAMESPACE_PREFIX}{name}"

    def validate_config(self) -> List[str]:
        """
        Validate configuration values.
        Returns list of validation errors.
        """
        errors = []

        if self.LOG_LEVEL.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"LOG_LEVEL {self.LOG_LEVEL!r} is not a logging level")

        for name in ("EXTRACTION_ACCEPT_CONFIDENCE", "EXTRACTION_REVIEW_CONFIDENCE"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                errors.append(f"{name} must be between 0 and 1")

        if self.EXTRACTION_REVIEW_CONFIDENCE > self.EXTRACTION_ACCEPT_CONFIDENCE:
            errors.append("EXTRACTION_REVIEW_CONFIDENCE cannot exceed EXTRACTION_ACCEPT_CONFIDENCE")

        if not self.STORAGE_DIR:
            errors.append("STORAGE_DIR is required")

        if self.is_production and self.DEBUG:
            errors.append("DEBUG should be False in production")

        return errors


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Settings are loaded once and cached for the application lifetime.
    """
    settings = Settings()

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.debug_enabled}")

    errors = settings.validate_config()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        if settings.is_production:
            raise ValueError(f"Production configuration invalid: {', '.join(errors)}")

    return settings
