"""Configuration module for the Meterline service.

Usage:
    from meterline.core.config import settings, Environment

    if settings.ENVIRONMENT == Environment.PRD:
        ...
"""

from meterline.core.config.enums import Environment
from meterline.core.config.settings import Settings

__all__ = [
    "Environment",
    "Settings",
    "settings",
]

# Singleton settings instance
settings = Settings()
