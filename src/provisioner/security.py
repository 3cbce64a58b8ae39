"""Credential acquisition and secret handling.

The provisioner authenticates with a managed identity only:
- No service principal secrets or passwords in the environment
- A user-assigned identity when a client ID is configured, else system-assigned

Account keys and connection strings read back from Azure are secrets; they
are redacted from anything shown to a user unless explicitly requested.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from typing import Any

from azure.identity import ManagedIdentityCredential

logger = logging.getLogger(__name__)

# Environment variables that indicate credential leakage
FORBIDDEN_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AZURE_CLIENT_SECRET",
    "AZURE_CLIENT_CERTIFICATE_PATH",
    "AZURE_CLIENT_CERTIFICATE_PASSWORD",
    "AZURE_USERNAME",
    "AZURE_PASSWORD",
)

REDACTED = "<redacted>"


class SecretlessViolationError(Exception):
    """Raised when a credential secret is present in the environment."""

    pass


def enforce_secretless_architecture() -> None:
    """Refuse to run when credential secrets are present in the environment.

    Raises:
        SecretlessViolationError: If any credential environment variable is set.
    """
    for env_var in FORBIDDEN_CREDENTIAL_ENV_VARS:
        if os.environ.get(env_var):
            logger.critical(
                "Secretless architecture violation",
                extra={"security_event": "credential_detected", "env_var": env_var},
            )
            raise SecretlessViolationError(
                f"{env_var} is set. Only managed identity authentication is allowed; "
                f"remove credential environment variables and assign a managed identity."
            )


def get_credential(client_id: str | None = None) -> ManagedIdentityCredential:
    """Get a ManagedIdentityCredential after verifying the environment.

    Args:
        client_id: Client ID of a user-assigned managed identity.
                   If None, uses the system-assigned identity.

    Raises:
        SecretlessViolationError: If credential environment variables are set.
    """
    enforce_secretless_architecture()

    if client_id:
        logger.info(
            "Using user-assigned managed identity",
            extra={"client_id": client_id[:8] + "..." if len(client_id) > 8 else client_id},
        )
        return ManagedIdentityCredential(client_id=client_id)

    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()


def redact_secrets(data: Mapping[str, Any], secret_fields: Iterable[str]) -> dict[str, Any]:
    """Return a copy of ``data`` with non-empty secret values replaced."""
    secret_names = set(secret_fields)
    return {
        key: REDACTED if key in secret_names and value else value
        for key, value in data.items()
    }
