"""
Configuration for the Feature Visibility Engine.
"""

from typing import List

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from shared.config import BaseConfig


class VisibilityConfig(BaseConfig):
    """Engine settings, read from VISIBILITY_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="VISIBILITY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    service_name: str = "visibility"

    # Change queue
    debounce_seconds: float = Field(default=1.0, ge=0)
    gateway_timeout_seconds: float = Field(default=10.0, gt=0)

    # Preview
    limited_coverage_threshold: float = Field(default=0.5, ge=0, le=1)
    apps_category_id: str = "core-apps"
    navigation_feature_id: str = "navigation"

    # Validation
    admin_role_names: List[str] = Field(default_factory=lambda: ["Administrator", "admin"])
    impact_user_warning_threshold: int = Field(default=5, ge=0)

    # Redis store
    redis_key_prefix: str = "visibility:"


def get_config(**overrides) -> VisibilityConfig:
    """Get engine configuration, with explicit overrides taking precedence over env."""
    return VisibilityConfig(**overrides)
