"""Pydantic models for declared resource documents.

These models provide:
1. Type-safe YAML parsing
2. Validation at the boundary (names, enums, tags) before any Azure call
3. The field metadata the reconciler needs: which fields force a
   replacement and which are computed from remote state
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, Field, field_validator

from .tags import validate_tags

STORAGE_ACCOUNT_NAME_PATTERN = re.compile(r"\A[a-z0-9]{3,24}\Z")
SNAPSHOT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
MAX_SNAPSHOT_NAME_LENGTH = 80


def normalize_location(location: str) -> str:
    """Normalize an Azure region the way ARM reports it ("West Europe" -> "westeurope")."""
    return location.replace(" ", "").lower()


def validate_storage_account_name(value: str) -> list[str]:
    """Return the problems with a storage account name; empty when valid."""
    if not STORAGE_ACCOUNT_NAME_PATTERN.match(value):
        return [
            "name can only consist of lowercase letters and numbers, "
            "and must be between 3 and 24 characters long"
        ]
    return []


def validate_snapshot_name(value: str) -> list[str]:
    """Return the problems with a snapshot name; empty when valid."""
    errors: list[str] = []
    if not SNAPSHOT_NAME_PATTERN.match(value):
        errors.append("Snapshot Names can only contain alphanumeric characters and underscores.")
    if len(value) > MAX_SNAPSHOT_NAME_LENGTH:
        errors.append(
            f"Snapshot Name can be up to {MAX_SNAPSHOT_NAME_LENGTH} characters, "
            f"currently {len(value)}."
        )
    return errors


def _canonical_choice(value: str, choices: tuple[str, ...], field_name: str) -> str:
    """Match ``value`` against ``choices`` ignoring case; return the canonical spelling."""
    for choice in choices:
        if choice.lower() == value.lower():
            return choice
    raise ValueError(f"{field_name} must be one of {list(choices)}")


# =============================================================================
# Base Model
# =============================================================================


class ResourceSpec(BaseModel):
    """Base declared document with the coordinates every resource has."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    # Assigned by Azure on the first successful create, then immutable
    id: str | None = None

    name: Annotated[str, Field(min_length=1)]
    resource_group_name: Annotated[
        str, Field(min_length=1, max_length=90, alias="resourceGroupName")
    ]
    location: Annotated[str, Field(min_length=1)]
    tags: dict[str, str] = Field(default_factory=dict)

    KIND: ClassVar[str] = ""
    FORCE_NEW_FIELDS: ClassVar[tuple[str, ...]] = ("name", "resource_group_name", "location")
    COMPUTED_FIELDS: ClassVar[tuple[str, ...]] = ()
    # Declared fields where None means "keep whatever Azure reports"
    OPTIONAL_COMPUTED_FIELDS: ClassVar[tuple[str, ...]] = ()
    # ARM treats these as case-insensitive and may echo them in another case
    CASE_INSENSITIVE_FIELDS: ClassVar[tuple[str, ...]] = ("resource_group_name",)
    SECRET_FIELDS: ClassVar[tuple[str, ...]] = ()

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        return normalize_location(v)

    @field_validator("tags")
    @classmethod
    def validate_tag_limits(cls, v: dict[str, str]) -> dict[str, str]:
        errors = validate_tags(v)
        if errors:
            raise ValueError("; ".join(errors))
        return v

    @classmethod
    def declared_fields(cls) -> tuple[str, ...]:
        """Fields the caller controls, i.e. everything except ``id`` and computed fields."""
        return tuple(
            name
            for name in cls.model_fields
            if name != "id" and name not in cls.COMPUTED_FIELDS
        )


# =============================================================================
# Storage Account
# =============================================================================


class AccountKind(str, Enum):
    """Storage account kinds."""

    STORAGE = "Storage"
    BLOB_STORAGE = "BlobStorage"


ACCOUNT_TIERS = ("Standard", "Premium")
REPLICATION_TYPES = ("LRS", "ZRS", "GRS", "RAGRS")
ACCESS_TIERS = ("Hot", "Cool")


class CustomDomainConfig(BaseModel):
    """Custom domain mapped onto the blob endpoint."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    name: Annotated[str, Field(min_length=1)]
    # ARM does not return this flag, so it always reads back as False
    use_subdomain: bool = Field(False, alias="useSubdomain")


class StorageAccountSpec(ResourceSpec):
    """Declared storage account."""

    account_kind: AccountKind = Field(AccountKind.STORAGE, alias="accountKind")
    account_tier: str = Field(alias="accountTier")
    account_replication_type: str = Field(alias="accountReplicationType")
    # None means "not declared": BlobStorage accounts then get the default tier
    access_tier: str | None = Field(None, alias="accessTier")
    custom_domain: CustomDomainConfig | None = Field(None, alias="customDomain")
    enable_blob_encryption: bool | None = Field(None, alias="enableBlobEncryption")
    enable_file_encryption: bool | None = Field(None, alias="enableFileEncryption")
    enable_https_traffic_only: bool = Field(False, alias="enableHttpsTrafficOnly")

    # Computed
    account_type: str = Field("", alias="accountType")
    primary_location: str = Field("", alias="primaryLocation")
    secondary_location: str = Field("", alias="secondaryLocation")
    primary_blob_endpoint: str = Field("", alias="primaryBlobEndpoint")
    secondary_blob_endpoint: str = Field("", alias="secondaryBlobEndpoint")
    primary_queue_endpoint: str = Field("", alias="primaryQueueEndpoint")
    secondary_queue_endpoint: str = Field("", alias="secondaryQueueEndpoint")
    primary_table_endpoint: str = Field("", alias="primaryTableEndpoint")
    secondary_table_endpoint: str = Field("", alias="secondaryTableEndpoint")
    # The storage API does not expose a secondary file endpoint
    primary_file_endpoint: str = Field("", alias="primaryFileEndpoint")
    primary_access_key: str = Field("", alias="primaryAccessKey")
    secondary_access_key: str = Field("", alias="secondaryAccessKey")
    primary_blob_connection_string: str = Field("", alias="primaryBlobConnectionString")
    secondary_blob_connection_string: str = Field("", alias="secondaryBlobConnectionString")

    KIND: ClassVar[str] = "StorageAccount"
    FORCE_NEW_FIELDS: ClassVar[tuple[str, ...]] = (
        "name",
        "resource_group_name",
        "location",
        "account_kind",
        "account_tier",
    )
    COMPUTED_FIELDS: ClassVar[tuple[str, ...]] = (
        "account_type",
        "primary_location",
        "secondary_location",
        "primary_blob_endpoint",
        "secondary_blob_endpoint",
        "primary_queue_endpoint",
        "secondary_queue_endpoint",
        "primary_table_endpoint",
        "secondary_table_endpoint",
        "primary_file_endpoint",
        "primary_access_key",
        "secondary_access_key",
        "primary_blob_connection_string",
        "secondary_blob_connection_string",
    )
    OPTIONAL_COMPUTED_FIELDS: ClassVar[tuple[str, ...]] = (
        "access_tier",
        "enable_blob_encryption",
        "enable_file_encryption",
    )
    SECRET_FIELDS: ClassVar[tuple[str, ...]] = (
        "primary_access_key",
        "secondary_access_key",
        "primary_blob_connection_string",
        "secondary_blob_connection_string",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        errors = validate_storage_account_name(v)
        if errors:
            raise ValueError("; ".join(errors))
        return v

    @field_validator("account_kind", mode="before")
    @classmethod
    def validate_account_kind(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _canonical_choice(v, tuple(k.value for k in AccountKind), "account_kind")
        return v

    @field_validator("account_tier")
    @classmethod
    def validate_account_tier(cls, v: str) -> str:
        return _canonical_choice(v, ACCOUNT_TIERS, "account_tier")

    @field_validator("account_replication_type")
    @classmethod
    def validate_replication_type(cls, v: str) -> str:
        return _canonical_choice(v, REPLICATION_TYPES, "account_replication_type")

    @field_validator("access_tier")
    @classmethod
    def validate_access_tier(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _canonical_choice(v, ACCESS_TIERS, "access_tier")

    @property
    def sku_name(self) -> str:
        """Combined SKU name, e.g. ``Standard_LRS``."""
        return f"{self.account_tier}_{self.account_replication_type}"


# =============================================================================
# Snapshot
# =============================================================================

CREATE_OPTIONS = ("Copy", "Import")


class KeyVaultSecretReference(BaseModel):
    """Disk encryption key held as a Key Vault secret."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    secret_url: Annotated[str, Field(min_length=1)] = Field(alias="secretUrl")
    source_vault_id: Annotated[str, Field(min_length=1)] = Field(alias="sourceVaultId")


class KeyVaultKeyReference(BaseModel):
    """Key encryption key held as a Key Vault key."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    key_url: Annotated[str, Field(min_length=1)] = Field(alias="keyUrl")
    source_vault_id: Annotated[str, Field(min_length=1)] = Field(alias="sourceVaultId")


class EncryptionSettingsConfig(BaseModel):
    """Azure Disk Encryption settings carried by a snapshot."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    enabled: bool = False
    disk_encryption_key: KeyVaultSecretReference | None = Field(None, alias="diskEncryptionKey")
    key_encryption_key: KeyVaultKeyReference | None = Field(None, alias="keyEncryptionKey")


class SnapshotSpec(ResourceSpec):
    """Declared managed disk snapshot."""

    create_option: str = Field(alias="createOption")
    source_uri: str | None = Field(None, alias="sourceUri")
    source_resource_id: str | None = Field(None, alias="sourceResourceId")
    storage_account_id: str | None = Field(None, alias="storageAccountId")
    disk_size_gb: int | None = Field(None, alias="diskSizeGb")
    encryption_settings: EncryptionSettingsConfig | None = Field(
        None, alias="encryptionSettings"
    )

    KIND: ClassVar[str] = "Snapshot"
    FORCE_NEW_FIELDS: ClassVar[tuple[str, ...]] = (
        "name",
        "resource_group_name",
        "location",
        "source_resource_id",
        "storage_account_id",
    )
    OPTIONAL_COMPUTED_FIELDS: ClassVar[tuple[str, ...]] = ("source_uri", "disk_size_gb")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        errors = validate_snapshot_name(v)
        if errors:
            raise ValueError(" ".join(errors))
        return v

    @field_validator("create_option")
    @classmethod
    def validate_create_option(cls, v: str) -> str:
        return _canonical_choice(v, CREATE_OPTIONS, "create_option")

    @field_validator("disk_size_gb")
    @classmethod
    def validate_disk_size(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("disk_size_gb must be a positive number of gigabytes")
        return v


SPEC_CLASSES: dict[str, type[ResourceSpec]] = {
    StorageAccountSpec.KIND: StorageAccountSpec,
    SnapshotSpec.KIND: SnapshotSpec,
}


def get_spec_class(kind: str) -> type[ResourceSpec]:
    """Get the document class for a resource kind.

    Raises:
        ValueError: If the kind is not supported.
    """
    spec_class = SPEC_CLASSES.get(kind)
    if spec_class is None:
        raise ValueError(f"Unknown resource kind '{kind}'. Valid kinds: {list(SPEC_CLASSES)}")
    return spec_class
