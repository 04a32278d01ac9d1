"""
Configuration management for the SMBO engine.

This module handles package-wide defaults and environment variables
using pydantic settings management. Per-run options live on
``smbo.core.control.MBOControl``, which draws its defaults from here.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """
    Package settings with environment variable support.

    All settings can be overridden using environment variables with the
    prefix 'SMBO_' (e.g., SMBO_LOG_LEVEL=DEBUG).
    """

    model_config = SettingsConfigDict(
        env_prefix="SMBO_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="SMBO Engine", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Logging format string",
    )

    # Initial design settings
    design_method: str = Field(default="lhs", description="Default initial design method")
    init_design_factor: int = Field(
        default=4, description="Initial design size as a multiple of the dimension"
    )

    # Infill optimization (focus search) settings
    focus_search_points: int = Field(default=1000, description="Samples per focus search round")
    focus_search_maxit: int = Field(default=5, description="Shrinking rounds per restart")
    focus_search_restarts: int = Field(default=3, description="Independent focus search restarts")

    # Evaluation settings
    n_workers: int = Field(default=1, description="Worker threads for batch evaluation")
    random_seed: Optional[int] = Field(default=None, description="Default random seed")

    @field_validator("focus_search_points", "focus_search_maxit", "focus_search_restarts", "n_workers")
    @classmethod
    def validate_positive(cls, v):
        """Counts must be positive."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        return self.model_dump()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging from settings (or an explicit level)."""
    level_name = level or (LogLevel.DEBUG.value if settings.debug else settings.log_level.value)
    logging.basicConfig(level=getattr(logging, level_name), format=settings.log_format)
    logging.getLogger().setLevel(getattr(logging, level_name))


# Global settings instance
settings = Settings()
