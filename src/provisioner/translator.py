"""Desired-state translation into Azure SDK request models.

Translators are pure: they never touch the network. Cross-field validation
happens here so an illegal document is rejected before the first remote call.

Updates are described by an ordered tuple of ``UpdateGroup`` descriptors.
Each group names the document fields it covers and knows how to build its
single request. The reconciler walks the groups in order and sends one
request per changed group.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from azure.mgmt.compute.models import (
    CreationData,
    EncryptionSettingsCollection,
    EncryptionSettingsElement,
    KeyVaultAndKeyReference,
    KeyVaultAndSecretReference,
    Snapshot,
    SourceVault,
)
from azure.mgmt.storage.models import (
    CustomDomain,
    Encryption,
    EncryptionService,
    EncryptionServices,
    Sku,
    StorageAccountCreateParameters,
    StorageAccountUpdateParameters,
)

from .changes import FieldChanges
from .config import DEFAULT_BLOB_ACCESS_TIER, DEFAULT_ENCRYPTION_KEY_SOURCE
from .errors import DesiredStateError
from .models import AccountKind, EncryptionSettingsConfig, SnapshotSpec, StorageAccountSpec
from .tags import expand_tags

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateGroup:
    """One independently updatable slice of a resource.

    Attributes:
        name: Stable identifier used in logs and partial-apply errors.
        fields: Document fields covered by this group.
        build: Builds the request from the desired document and the changes.
    """

    name: str
    fields: tuple[str, ...]
    build: Callable[[Any, FieldChanges], Any]


@dataclass(frozen=True)
class UpdateRequest:
    """A request for one changed group, ready to send."""

    group: UpdateGroup
    parameters: Any


# =============================================================================
# Storage Account
# =============================================================================


class StorageAccountTranslator:
    """Builds storage account create and update parameters.

    Args:
        encryption_key_source: Key source sent with every encryption block.
        default_access_tier: Tier applied to BlobStorage accounts that do not declare one.
    """

    def __init__(
        self,
        encryption_key_source: str = DEFAULT_ENCRYPTION_KEY_SOURCE,
        default_access_tier: str = DEFAULT_BLOB_ACCESS_TIER,
    ) -> None:
        self._key_source = encryption_key_source
        self._default_access_tier = default_access_tier
        self.update_groups: tuple[UpdateGroup, ...] = (
            UpdateGroup("replication", ("account_replication_type",), self._replication),
            UpdateGroup("access_tier", ("access_tier",), self._access_tier),
            UpdateGroup("tags", ("tags",), self._tags),
            UpdateGroup(
                "encryption",
                ("enable_blob_encryption", "enable_file_encryption"),
                self._encryption,
            ),
            UpdateGroup("custom_domain", ("custom_domain",), self._custom_domain),
            UpdateGroup(
                "https_traffic_only",
                ("enable_https_traffic_only",),
                self._https_traffic_only,
            ),
        )

    def validate(self, spec: StorageAccountSpec) -> None:
        """Reject field combinations Azure would refuse.

        Raises:
            DesiredStateError: If the combination is illegal.
        """
        if spec.account_kind == AccountKind.BLOB_STORAGE and spec.sku_name == "Standard_ZRS":
            raise DesiredStateError(
                "A `account_replication_type` of `ZRS` isn't supported for Blob Storage accounts."
            )

    def for_create(self, spec: StorageAccountSpec) -> StorageAccountCreateParameters:
        """Build the create request.

        Raises:
            DesiredStateError: If the document is invalid.
        """
        self.validate(spec)

        services = EncryptionServices(
            blob=EncryptionService(enabled=bool(spec.enable_blob_encryption)),
        )
        if spec.enable_file_encryption:
            services.file = EncryptionService(enabled=True)

        parameters = StorageAccountCreateParameters(
            sku=Sku(name=spec.sku_name),
            kind=spec.account_kind.value,
            location=spec.location,
            tags=expand_tags(spec.tags),
            encryption=Encryption(services=services, key_source=self._key_source),
            enable_https_traffic_only=spec.enable_https_traffic_only,
        )

        if spec.custom_domain is not None:
            parameters.custom_domain = CustomDomain(
                name=spec.custom_domain.name,
                use_sub_domain_name=spec.custom_domain.use_subdomain,
            )

        # Access tier is only meaningful for BlobStorage accounts
        if spec.account_kind == AccountKind.BLOB_STORAGE:
            parameters.access_tier = spec.access_tier or self._default_access_tier

        return parameters

    def for_update(
        self, spec: StorageAccountSpec, changes: FieldChanges
    ) -> list[UpdateRequest]:
        """Build one request per changed group, in fixed order.

        Raises:
            DesiredStateError: If the document is invalid.
        """
        self.validate(spec)
        requests = [
            UpdateRequest(group, group.build(spec, changes))
            for group in self.update_groups
            if changes.has_any_change(group.fields)
        ]
        logger.debug(
            "Translated storage account update",
            extra={"resource_name": spec.name, "groups": [r.group.name for r in requests]},
        )
        return requests

    def _replication(
        self, spec: StorageAccountSpec, changes: FieldChanges
    ) -> StorageAccountUpdateParameters:
        return StorageAccountUpdateParameters(sku=Sku(name=spec.sku_name))

    def _access_tier(
        self, spec: StorageAccountSpec, changes: FieldChanges
    ) -> StorageAccountUpdateParameters:
        return StorageAccountUpdateParameters(
            access_tier=spec.access_tier or self._default_access_tier
        )

    def _tags(
        self, spec: StorageAccountSpec, changes: FieldChanges
    ) -> StorageAccountUpdateParameters:
        return StorageAccountUpdateParameters(tags=expand_tags(spec.tags))

    def _encryption(
        self, spec: StorageAccountSpec, changes: FieldChanges
    ) -> StorageAccountUpdateParameters:
        services = EncryptionServices()
        if changes.has_change("enable_blob_encryption"):
            services.blob = EncryptionService(enabled=bool(spec.enable_blob_encryption))
        if changes.has_change("enable_file_encryption"):
            services.file = EncryptionService(enabled=bool(spec.enable_file_encryption))
        return StorageAccountUpdateParameters(
            encryption=Encryption(services=services, key_source=self._key_source)
        )

    def _custom_domain(
        self, spec: StorageAccountSpec, changes: FieldChanges
    ) -> StorageAccountUpdateParameters:
        # An empty name clears the domain
        domain = spec.custom_domain
        return StorageAccountUpdateParameters(
            custom_domain=CustomDomain(
                name=domain.name if domain else "",
                use_sub_domain_name=domain.use_subdomain if domain else False,
            )
        )

    def _https_traffic_only(
        self, spec: StorageAccountSpec, changes: FieldChanges
    ) -> StorageAccountUpdateParameters:
        return StorageAccountUpdateParameters(
            enable_https_traffic_only=spec.enable_https_traffic_only
        )


# =============================================================================
# Snapshot
# =============================================================================


class SnapshotTranslator:
    """Builds snapshot create-or-update payloads."""

    def __init__(self) -> None:
        # Snapshots are always sent whole, so every declared field is one group
        self.update_groups: tuple[UpdateGroup, ...] = (
            UpdateGroup(
                "snapshot",
                tuple(
                    name
                    for name in SnapshotSpec.declared_fields()
                    if name not in SnapshotSpec.FORCE_NEW_FIELDS
                ),
                lambda spec, changes: self.for_create(spec),
            ),
        )

    def for_create(self, spec: SnapshotSpec) -> Snapshot:
        """Build the snapshot payload used for both create and update."""
        creation_data = CreationData(create_option=spec.create_option)
        if spec.source_uri:
            creation_data.source_uri = spec.source_uri
        if spec.source_resource_id:
            creation_data.source_resource_id = spec.source_resource_id
        if spec.storage_account_id:
            creation_data.storage_account_id = spec.storage_account_id

        snapshot = Snapshot(
            location=spec.location,
            tags=expand_tags(spec.tags),
            creation_data=creation_data,
        )

        if spec.disk_size_gb and spec.disk_size_gb > 0:
            snapshot.disk_size_gb = spec.disk_size_gb

        if spec.encryption_settings is not None:
            settings = self._encryption_settings(spec.encryption_settings)
            snapshot.encryption_settings_collection = settings

        return snapshot

    def for_update(self, spec: SnapshotSpec, changes: FieldChanges) -> list[UpdateRequest]:
        """Build the single merged request when anything changed."""
        return [
            UpdateRequest(group, group.build(spec, changes))
            for group in self.update_groups
            if changes.has_any_change(group.fields)
        ]

    def _encryption_settings(
        self, settings: EncryptionSettingsConfig
    ) -> EncryptionSettingsCollection:

        element = EncryptionSettingsElement()
        if settings.disk_encryption_key is not None:
            element.disk_encryption_key = KeyVaultAndSecretReference(
                source_vault=SourceVault(id=settings.disk_encryption_key.source_vault_id),
                secret_url=settings.disk_encryption_key.secret_url,
            )
        if settings.key_encryption_key is not None:
            element.key_encryption_key = KeyVaultAndKeyReference(
                source_vault=SourceVault(id=settings.key_encryption_key.source_vault_id),
                key_url=settings.key_encryption_key.key_url,
            )

        elements = None
        if element.disk_encryption_key is not None or element.key_encryption_key is not None:
            elements = [element]

        return EncryptionSettingsCollection(
            enabled=settings.enabled,
            encryption_settings=elements,
        )
