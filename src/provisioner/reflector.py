"""Reflection of remote state onto declared documents.

A reflector maps the SDK representation (plus any separately fetched
secrets) back onto the document, filling the computed fields. Optional
nested groups are only mapped when Azure reports them; anything Azure does
not report is carried over from ``base``. Missing endpoints and keys read
back as empty strings.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from .errors import RemoteStateError
from .models import SnapshotSpec, StorageAccountSpec, normalize_location
from .poller import state_value
from .tags import flatten_tags

logger = logging.getLogger(__name__)

BLOB_CONNECTION_STRING_FORMAT = (
    "DefaultEndpointsProtocol=https;BlobEndpoint={endpoint};"
    "AccountName={account_name};AccountKey={account_key}"
)


def split_sku_name(sku_name: str) -> tuple[str, str]:
    """Split ``<tier>_<replication>`` into its two halves.

    Raises:
        RemoteStateError: If the name does not have exactly that shape.
    """
    parts = sku_name.split("_")
    if len(parts) != 2 or not all(parts):
        raise RemoteStateError(
            f"Storage account SKU name '{sku_name}' is not of the form <tier>_<replication>"
        )
    return parts[0], parts[1]


def blob_connection_string(endpoint: str, account_name: str, account_key: str) -> str:
    """Build a blob connection string; empty when the endpoint is unknown."""
    if not endpoint:
        return ""
    return BLOB_CONNECTION_STRING_FORMAT.format(
        endpoint=endpoint,
        account_name=account_name,
        account_key=account_key,
    )


def _secret(secrets: Sequence[str], index: int) -> str:
    return secrets[index] if len(secrets) > index else ""


def _endpoints(endpoints: Any, *names: str) -> dict[str, str]:
    """Read endpoint URLs off an SDK ``Endpoints`` object, ``""`` where absent."""
    return {name: (getattr(endpoints, name, None) or "") if endpoints else "" for name in names}


def _build(spec_class: type[Any], values: dict[str, Any]) -> Any:
    try:
        return spec_class.model_validate(values)
    except ValidationError as e:
        raise RemoteStateError(
            f"Remote {spec_class.KIND} '{values.get('name')}' does not map onto the "
            f"declared model: {e.error_count()} invalid field(s)"
        ) from e


class StorageAccountReflector:
    """Maps a ``StorageAccount`` SDK model onto ``StorageAccountSpec``."""

    def reflect(
        self,
        remote: Any,
        secrets: Sequence[str],
        *,
        resource_group_name: str,
        base: StorageAccountSpec | None = None,
    ) -> StorageAccountSpec:
        """Build the document Azure currently describes.

        Args:
            remote: SDK storage account returned by ``get_properties``.
            secrets: Account key values, primary first.
            resource_group_name: Group the account lives in (ARM does not echo it).
            base: Prior document supplying fields Azure does not report.

        Raises:
            RemoteStateError: If the remote shape cannot be mapped.
        """
        values: dict[str, Any] = base.model_dump() if base is not None else {}
        name = remote.name

        sku_name = state_value(remote.sku.name) if remote.sku else ""
        tier, replication = split_sku_name(sku_name)

        values.update(
            id=remote.id,
            name=name,
            resource_group_name=resource_group_name,
            location=normalize_location(remote.location or ""),
            tags=flatten_tags(remote.tags),
            account_kind=state_value(remote.kind),
            account_tier=tier,
            account_replication_type=replication,
            account_type=sku_name,
            access_tier=state_value(remote.access_tier) or None,
            enable_https_traffic_only=bool(remote.enable_https_traffic_only),
            primary_location=remote.primary_location or "",
            secondary_location=remote.secondary_location or "",
        )

        # ARM never returns the use-subdomain flag
        if remote.custom_domain is not None:
            values["custom_domain"] = {"name": remote.custom_domain.name}

        encryption = remote.encryption
        services = encryption.services if encryption is not None else None
        if services is not None:
            if services.blob is not None:
                values["enable_blob_encryption"] = services.blob.enabled
            if services.file is not None:
                values["enable_file_encryption"] = services.file.enabled

        primary = _endpoints(remote.primary_endpoints, "blob", "queue", "table", "file")
        secondary = _endpoints(remote.secondary_endpoints, "blob", "queue", "table")
        primary_key = _secret(secrets, 0)
        secondary_key = _secret(secrets, 1)

        values.update(
            primary_blob_endpoint=primary["blob"],
            primary_queue_endpoint=primary["queue"],
            primary_table_endpoint=primary["table"],
            primary_file_endpoint=primary["file"],
            secondary_blob_endpoint=secondary["blob"],
            secondary_queue_endpoint=secondary["queue"],
            secondary_table_endpoint=secondary["table"],
            primary_access_key=primary_key,
            secondary_access_key=secondary_key,
            primary_blob_connection_string=blob_connection_string(
                primary["blob"], name, primary_key
            ),
            secondary_blob_connection_string=blob_connection_string(
                secondary["blob"], name, secondary_key
            ),
        )

        return _build(StorageAccountSpec, values)


class SnapshotReflector:
    """Maps a ``Snapshot`` SDK model onto ``SnapshotSpec``."""

    def reflect(
        self,
        remote: Any,
        secrets: Sequence[str],
        *,
        resource_group_name: str,
        base: SnapshotSpec | None = None,
    ) -> SnapshotSpec:
        values: dict[str, Any] = base.model_dump() if base is not None else {}

        values.update(
            id=remote.id,
            name=remote.name,
            resource_group_name=resource_group_name,
            location=normalize_location(remote.location or ""),
            tags=flatten_tags(remote.tags),
        )

        data = remote.creation_data
        if data is not None:
            values["create_option"] = state_value(data.create_option)
            if data.source_uri:
                values["source_uri"] = data.source_uri
            if data.source_resource_id:
                values["source_resource_id"] = data.source_resource_id
            if data.storage_account_id:
                values["storage_account_id"] = data.storage_account_id

        if remote.disk_size_gb is not None:
            values["disk_size_gb"] = remote.disk_size_gb

        values["encryption_settings"] = self._encryption_settings(
            remote.encryption_settings_collection
        )

        return _build(SnapshotSpec, values)

    def _encryption_settings(self, collection: Any) -> dict[str, Any] | None:
        if collection is None:
            return None

        result: dict[str, Any] = {"enabled": bool(collection.enabled)}
        elements = collection.encryption_settings or []
        if elements:
            element = elements[0]
            disk_key = element.disk_encryption_key
            if disk_key is not None:
                result["disk_encryption_key"] = {
                    "secret_url": disk_key.secret_url,
                    "source_vault_id": disk_key.source_vault.id if disk_key.source_vault else "",
                }
            key_key = element.key_encryption_key
            if key_key is not None:
                result["key_encryption_key"] = {
                    "key_url": key_key.key_url,
                    "source_vault_id": key_key.source_vault.id if key_key.source_vault else "",
                }
        return result
