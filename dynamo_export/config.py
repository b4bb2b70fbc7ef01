"""Configuration management for the table export engine."""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dynamo_export.exceptions import ConfigurationError
from dynamo_export.models import DEFAULT_PAGE_LIMIT, OutputFormat, QuerySpec


class ExportConfig(BaseSettings):
    """Configuration for one table export run."""

    model_config = SettingsConfigDict(
        env_file="config.env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Required fields
    table_name: str = Field(..., description="Name of the table to export")

    # Query shape
    index_name: str | None = Field(default=None, description="Secondary index to read instead of the base table")
    page_limit: int = Field(default=DEFAULT_PAGE_LIMIT, gt=0, description="Items requested per page")

    # Output
    output_format: OutputFormat = Field(default=OutputFormat.CSV)
    output_path: Path | None = Field(default=None, description="File appended to by the export")
    delimiter: str = Field(default=",")
    drain_high_water_mark_bytes: int = Field(default=1024 * 1024, ge=1)

    # AWS client settings
    aws_region: str | None = Field(default=None)
    aws_endpoint_url: str | None = Field(default=None, description="Override endpoint, e.g. DynamoDB Local")
    aws_profile: str | None = Field(default=None)
    aws_max_attempts: int = Field(default=3, ge=1, le=10)
    aws_connect_timeout_seconds: int = Field(default=10, ge=1, le=300)
    aws_read_timeout_seconds: int = Field(default=60, ge=1, le=300)

    # Logging
    log_level: str = Field(default="INFO")

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("TABLE_NAME cannot be empty")
        return v

    @field_validator("delimiter")
    @classmethod
    def validate_delimiter(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError("DELIMITER must be a single character")
        if v in {'"', "\r", "\n"}:
            raise ValueError("DELIMITER cannot be a quote or line break")
        return v

    @field_validator("aws_endpoint_url")
    @classmethod
    def validate_endpoint_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("AWS_ENDPOINT_URL must start with http:// or https://")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v

    def to_query_spec(self, key_condition=None, filter_condition=None) -> QuerySpec:
        return QuerySpec(
            table_name=self.table_name,
            index_name=self.index_name,
            limit=self.page_limit,
            key_condition=key_condition,
            filter_condition=filter_condition,
        )


def get_config(**overrides) -> ExportConfig:
    """Load configuration from environment, applying explicit overrides."""
    try:
        load_dotenv("config.env")
        return ExportConfig(**{k: v for k, v in overrides.items() if v is not None})
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e
