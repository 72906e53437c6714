"""
Configuration management for the task poller.

This module handles environment variables, settings validation, and configuration
management using Pydantic Settings for type safety and validation.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PollerConfig(BaseModel):
    """Per-poller configuration settings."""

    concurrency: int = Field(default=1, ge=1, description="Own gate width")
    interval_ms: float = Field(
        default=1000, ge=0, description="Own gate start-to-start spacing in ms"
    )
    max_attempts: int = Field(
        default=100, ge=1, description="Maximum status requests per session"
    )
    manager: str = Field(default="default", description="Manager name")


class ManagerConfig(BaseModel):
    """Named manager configuration settings."""

    name: str = Field(..., min_length=1, description="Manager name")
    concurrency: int = Field(default=1, ge=1, description="Shared gate width")
    max_tasks: int = Field(
        default=0, ge=0, description="Lifetime admission cap (0 for unlimited)"
    )


class Settings(BaseSettings):
    """Main task poller settings."""

    model_config = SettingsConfigDict(
        env_prefix="TASK_POLLER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Poller configuration
    concurrency: int = Field(default=1, description="Own gate width")
    interval_ms: float = Field(
        default=1000, description="Own gate start-to-start spacing in ms"
    )
    max_attempts: int = Field(
        default=100, description="Maximum status requests per session"
    )

    # Manager configuration
    default_manager: str = Field(
        default="default", description="Manager used by new pollers"
    )
    manager_concurrency: int = Field(
        default=1, description="Width of the default manager's gate"
    )
    manager_max_tasks: int = Field(
        default=0, description="Lifetime admission cap of the default manager"
    )
    managers: str | list[ManagerConfig] = Field(
        default="",
        description="Additional managers "
        "(comma-separated name:concurrency[:max_tasks] entries)",
    )

    # Logging configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format")

    @field_validator("managers", mode="before")
    @classmethod
    def parse_managers(cls, v: Any) -> list[Any]:
        """Parse managers from comma-separated string or list."""
        if isinstance(v, str):
            if not v.strip():
                return []
            managers = []
            for entry in v.split(","):
                entry = entry.strip()
                if not entry:
                    continue
                parts = [part.strip() for part in entry.split(":")]
                if len(parts) not in (2, 3):
                    raise ValueError(
                        f"Invalid manager entry {entry!r}, "
                        "expected name:concurrency[:max_tasks]"
                    )
                managers.append(
                    {
                        "name": parts[0],
                        "concurrency": parts[1],
                        "max_tasks": parts[2] if len(parts) == 3 else 0,
                    }
                )
            return managers
        elif isinstance(v, list):
            return v
        else:
            error_msg = f"managers must be a string or list, got {type(v)}"
            raise ValueError(error_msg)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed_formats = {"json", "console"}
        if v.lower() not in allowed_formats:
            raise ValueError(f"Invalid log format: {v}")
        return v.lower()

    @property
    def poller_config(self) -> PollerConfig:
        """Get poller configuration."""
        return PollerConfig(
            concurrency=self.concurrency,
            interval_ms=self.interval_ms,
            max_attempts=self.max_attempts,
            manager=self.default_manager,
        )

    @property
    def manager_configs(self) -> list[ManagerConfig]:
        """Get every configured manager, default manager first."""
        configs = [
            ManagerConfig(
                name=self.default_manager,
                concurrency=self.manager_concurrency,
                max_tasks=self.manager_max_tasks,
            )
        ]
        extra = self.managers
        if isinstance(extra, list):
            configs.extend(
                config
                for config in extra
                if config.name != self.default_manager
            )
        return configs


# Global settings instance - initialized lazily to avoid import-time errors
_settings_instance = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
