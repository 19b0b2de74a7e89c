"""Configuration for reminder matching, quotas and dispatch using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.paths import ENV_FILE


class ReminderSettings(BaseSettings):
    """Settings for the reminder sweep, client scheduler and quota engine.

    All settings are loaded from environment variables with the REMINDER_ prefix.

    :param tolerance_minutes: Width of the firing window below each offset.
    :param lookahead_hours: How far ahead the sweep looks for due items.
    :param basic_limit: Monthly reminder limit for the basic tier.
    :param pro_limit: Monthly reminder limit for the pro tier.
    :param webhook_url: Endpoint the webhook gateway posts reminders to.
    :param dispatch_timeout_seconds: Upper bound on a single gateway call.
    :param dispatch_workers: Threads available for gateway calls.
    :param environment: Environment name included in dispatch metadata.
    :param late_grace_seconds: How late a client timer may be and still fire.
    """

    model_config = SettingsConfigDict(
        env_prefix="REMINDER_",
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    tolerance_minutes: int = Field(
        default=5,
        ge=0,
        le=60,
        description="Firing window below each offset, in minutes",
    )
    lookahead_hours: int = Field(
        default=24,
        ge=1,
        le=168,
        description="Sweep lookahead horizon in hours",
    )
    basic_limit: int = Field(
        default=15,
        ge=0,
        description="Monthly reminder limit for the basic tier",
    )
    pro_limit: int = Field(
        default=100,
        ge=0,
        description="Monthly reminder limit for the pro tier",
    )
    webhook_url: str | None = Field(
        default=None,
        description="Webhook endpoint for reminder delivery",
    )
    dispatch_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout for a single dispatch call in seconds",
    )
    dispatch_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Threads available for concurrent gateway calls",
    )
    environment: str = Field(
        default="production",
        description="Environment name sent with each reminder",
    )
    late_grace_seconds: int = Field(
        default=60,
        ge=0,
        le=600,
        description="Client-side grace for reminders that are just overdue",
    )


@lru_cache
def get_reminder_settings() -> ReminderSettings:
    """Get cached reminder settings.

    Settings are loaded once and cached for the lifetime of the process.

    :returns: Configured ReminderSettings instance.
    """
    return ReminderSettings()
