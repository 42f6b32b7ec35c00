"""Configuration schema: Pydantic models for omnirelay config files."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AutomationConfig(BaseModel):
    """How scripts are run against the application."""
    app_name: str = Field("OmniFocus", alias="appName")
    interpreter: str = "osascript"
    shell: str = "/bin/sh"
    timeout: float = 10.0
    probe_timeout: float = Field(5.0, alias="probeTimeout")
    retry_delay: float = Field(1.0, alias="retryDelay")
    scripts_dir: Optional[str] = Field(None, alias="scriptsDir")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @field_validator("timeout", "probe_timeout")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be > 0")
        return value


class RetryConfig(BaseModel):
    """Caller-level retry with exponential backoff."""
    max_attempts: int = Field(3, alias="maxAttempts", ge=1)
    base_delay: float = Field(1.0, alias="baseDelay", ge=0)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class MonitorConfig(BaseModel):
    """Background connection probing."""
    enabled: bool = True
    interval: float = Field(30.0, gt=0)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class CacheConfig(BaseModel):
    """In-memory response cache."""
    max_entries: int = Field(1000, alias="maxEntries", ge=1)
    default_ttl: float = Field(300.0, alias="defaultTTL", gt=0)
    cleanup_interval: float = Field(60.0, alias="cleanupInterval", gt=0)
    enable_stats: bool = Field(True, alias="enableStats")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: Optional[str] = None
    format: Optional[Literal["kv", "json", "pretty"]] = None
    console: Optional[bool] = None
    file: Optional[bool] = None
    dev_file: Optional[bool] = Field(None, alias="devFile")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class Config(BaseModel):
    """Root configuration."""
    schema_: Optional[str] = Field(None, alias="$schema")
    log_level: Optional[str] = Field(None, alias="logLevel")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    automation: AutomationConfig = Field(default_factory=AutomationConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
