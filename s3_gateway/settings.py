from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .buckets import validate_key_size, validate_pool_size


class StorageSettings(BaseSettings):
    """Connection settings for the S3-compatible object store."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    endpoint: str | None = Field(
        default=None,
        validation_alias="S3_GATEWAY_ENDPOINT",
    )
    access_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "S3_GATEWAY_ACCESS_KEY",
            "AWS_ACCESS_KEY_ID",
        ),
    )
    secret_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "S3_GATEWAY_SECRET_KEY",
            "AWS_SECRET_ACCESS_KEY",
        ),
    )
    session_token: str | None = Field(
        default=None,
        validation_alias="S3_GATEWAY_SESSION_TOKEN",
    )
    region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("S3_GATEWAY_REGION", "AWS_REGION"),
    )
    addressing_style: Literal["auto", "virtual", "path"] = Field(
        default="path",
        validation_alias="S3_GATEWAY_ADDRESSING_STYLE",
    )
    # Retrying is left to callers; botocore makes a single attempt by default.
    max_attempts: int = Field(
        default=1,
        ge=1,
        validation_alias="S3_GATEWAY_MAX_ATTEMPTS",
    )


class ServerSettings(BaseSettings):
    """Addressing, signing and access settings for the download gateway."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    bucket_name: str = Field(
        default="oicr.icgc",
        validation_alias="S3_GATEWAY_BUCKET_NAME",
    )
    state_bucket_name: str = Field(
        default="oicr.icgc",
        validation_alias="S3_GATEWAY_STATE_BUCKET_NAME",
    )
    data_directory: str = Field(
        default="data",
        validation_alias="S3_GATEWAY_DATA_DIRECTORY",
    )
    bucket_pool_size: int = Field(
        default=0,
        validation_alias="S3_GATEWAY_BUCKET_POOL_SIZE",
    )
    bucket_key_size: int = Field(
        default=2,
        validation_alias="S3_GATEWAY_BUCKET_KEY_SIZE",
    )
    download_expiration: int = Field(
        default=1,
        gt=0,
        validation_alias="S3_GATEWAY_DOWNLOAD_EXPIRATION",
    )
    part_size: int = Field(
        default=20 * 1024 * 1024,
        gt=0,
        validation_alias="S3_GATEWAY_PART_SIZE",
    )
    auth_url: str | None = Field(
        default=None,
        validation_alias="S3_GATEWAY_AUTH_URL",
    )
    auth_client_id: str | None = Field(
        default=None,
        validation_alias="S3_GATEWAY_AUTH_CLIENT_ID",
    )
    auth_client_secret: str | None = Field(
        default=None,
        validation_alias="S3_GATEWAY_AUTH_CLIENT_SECRET",
    )
    download_scope: str = Field(
        default="s3.download",
        validation_alias="S3_GATEWAY_DOWNLOAD_SCOPE",
    )

    @field_validator("bucket_key_size")
    @classmethod
    def _check_key_size(cls, value: int) -> int:
        validate_key_size(value)
        return value

    @field_validator("data_directory", mode="before")
    @classmethod
    def _strip_data_directory(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip("/")
        return value

    @model_validator(mode="after")
    def _check_pool_size(self) -> ServerSettings:
        validate_pool_size(self.bucket_pool_size, self.bucket_key_size)
        return self

    @property
    def partitioned(self) -> bool:
        """Whether objects are spread across a pool of partition buckets."""
        return self.bucket_pool_size > 0

    @property
    def secured(self) -> bool:
        return bool(self.auth_url)


class MountSettings(BaseSettings):
    """Settings for the client-side mount view."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    gateway_url: str = Field(
        default="http://127.0.0.1:8000",
        validation_alias="S3_GATEWAY_URL",
    )
    metadata_url: str = Field(
        default="http://127.0.0.1:8444",
        validation_alias="S3_GATEWAY_METADATA_URL",
    )
    access_token: str | None = Field(
        default=None,
        validation_alias="S3_GATEWAY_ACCESS_TOKEN",
    )
    url_expiration_hours: int = Field(
        default=24,
        validation_alias="S3_GATEWAY_URL_EXPIRATION_HOURS",
    )

    @field_validator("url_expiration_hours")
    @classmethod
    def _check_expiration(cls, value: int) -> int:
        # The URL cache lives one hour less than the URLs it holds.
        if value < 2:
            msg = "url expiration must be at least 2 hours"
            raise ValueError(msg)
        return value


def load_storage_settings_from_env() -> StorageSettings:
    """Load object store connection settings from environment variables."""
    return StorageSettings()


def load_server_settings_from_env() -> ServerSettings:
    """Load gateway settings from environment variables.

    Returns:
        ServerSettings instance populated from environment variables.

    Raises:
        pydantic.ValidationError: if the bucket key size exceeds the maximum.
    """
    return ServerSettings()


def load_mount_settings_from_env() -> MountSettings:
    return MountSettings()
