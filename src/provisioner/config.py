"""Configuration management with validation.

All settings are validated when the Config is constructed so that a bad
environment fails before any Azure call is made.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_CREATE_TIMEOUT_SECONDS = 1800  # 30 minutes, provisioning is slow
MIN_OPERATION_TIMEOUT_SECONDS = 60
MAX_OPERATION_TIMEOUT_SECONDS = 7200

DEFAULT_POLL_INTERVAL_SECONDS = 15
MIN_POLL_INTERVAL_SECONDS = 1
MAX_POLL_INTERVAL_SECONDS = 300

DEFAULT_DELETE_TIMEOUT_SECONDS = 1800

# The KeySource of storage encryption must carry this value for the
# encryption services to be accepted by the storage resource provider
DEFAULT_ENCRYPTION_KEY_SOURCE = "Microsoft.Storage"
DEFAULT_BLOB_ACCESS_TIER = "Hot"
VALID_BLOB_ACCESS_TIERS = ("Hot", "Cool")

DEFAULT_STATE_DIR = ".provisioner"

# File size limits (bytes), checked before any file is read
MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024
MAX_STATE_FILE_SIZE_BYTES = 1024 * 1024

# Input validation patterns
VALID_SUBSCRIPTION_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    """Provisioner configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-operation.
    """

    # Required fields
    subscription_id: str

    # Identity
    client_id: str | None = None

    # Where the CLI keeps the declarative documents between runs
    state_dir: Path = field(default_factory=lambda: Path(DEFAULT_STATE_DIR))

    # Timing
    create_timeout_seconds: int = DEFAULT_CREATE_TIMEOUT_SECONDS
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    delete_timeout_seconds: int = DEFAULT_DELETE_TIMEOUT_SECONDS

    # Translation constants
    encryption_key_source: str = DEFAULT_ENCRYPTION_KEY_SOURCE
    default_access_tier: str = DEFAULT_BLOB_ACCESS_TIER

    # Logging
    enable_audit_logging: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.subscription_id:
            errors.append("AZURE_SUBSCRIPTION_ID is required")
        elif not re.match(VALID_SUBSCRIPTION_ID_PATTERN, self.subscription_id.lower()):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        for name, value in (
            ("CREATE_TIMEOUT", self.create_timeout_seconds),
            ("DELETE_TIMEOUT", self.delete_timeout_seconds),
        ):
            if not (MIN_OPERATION_TIMEOUT_SECONDS <= value <= MAX_OPERATION_TIMEOUT_SECONDS):
                errors.append(
                    f"{name} must be between {MIN_OPERATION_TIMEOUT_SECONDS} "
                    f"and {MAX_OPERATION_TIMEOUT_SECONDS} seconds"
                )

        if not (
            MIN_POLL_INTERVAL_SECONDS <= self.poll_interval_seconds <= MAX_POLL_INTERVAL_SECONDS
        ):
            errors.append(
                f"POLL_INTERVAL must be between {MIN_POLL_INTERVAL_SECONDS} "
                f"and {MAX_POLL_INTERVAL_SECONDS} seconds"
            )
        elif self.poll_interval_seconds > self.create_timeout_seconds:
            errors.append("POLL_INTERVAL cannot exceed CREATE_TIMEOUT")

        if not self.encryption_key_source:
            errors.append("STORAGE_ENCRYPTION_KEY_SOURCE cannot be empty")

        if self.default_access_tier not in VALID_BLOB_ACCESS_TIERS:
            errors.append(
                f"BLOB_DEFAULT_ACCESS_TIER must be one of {VALID_BLOB_ACCESS_TIERS}: "
                f"{self.default_access_tier}"
            )

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {VALID_LOG_LEVELS}: {self.log_level}")

        if self.state_dir.exists() and not self.state_dir.is_dir():
            errors.append(f"STATE_DIR is not a directory: {self.state_dir}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def log_level_number(self) -> int:
        """Numeric logging level for the configured level name."""
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Target Azure subscription
            AZURE_CLIENT_ID: Client ID of a user-assigned managed identity (optional)
            STATE_DIR: Directory holding saved resource documents (default: ./.provisioner)
            CREATE_TIMEOUT: Seconds to wait for a create to converge (default: 1800)
            POLL_INTERVAL: Seconds between provisioning state polls (default: 15)
            DELETE_TIMEOUT: Seconds to wait for a delete to finish (default: 1800)
            STORAGE_ENCRYPTION_KEY_SOURCE: Encryption key source (default: Microsoft.Storage)
            BLOB_DEFAULT_ACCESS_TIER: Access tier used for BlobStorage accounts
                when none is declared (default: Hot)
            ENABLE_AUDIT_LOGGING: Emit one audit record per operation (default: true)
            LOG_LEVEL: Root log level (default: INFO)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            client_id=os.environ.get("AZURE_CLIENT_ID") or None,
            state_dir=Path(os.environ.get("STATE_DIR", DEFAULT_STATE_DIR)),
            create_timeout_seconds=get_int("CREATE_TIMEOUT", DEFAULT_CREATE_TIMEOUT_SECONDS),
            poll_interval_seconds=get_int("POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS),
            delete_timeout_seconds=get_int("DELETE_TIMEOUT", DEFAULT_DELETE_TIMEOUT_SECONDS),
            encryption_key_source=os.environ.get(
                "STORAGE_ENCRYPTION_KEY_SOURCE", DEFAULT_ENCRYPTION_KEY_SOURCE
            ),
            default_access_tier=os.environ.get(
                "BLOB_DEFAULT_ACCESS_TIER", DEFAULT_BLOB_ACCESS_TIER
            ),
            enable_audit_logging=get_bool("ENABLE_AUDIT_LOGGING", True),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )
