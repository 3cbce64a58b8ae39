"""Per-kind bundles of the pieces the reconciler drives.

The two resource kinds share one lifecycle but differ in how updates are
sent (the translator's update groups) and whether completion is observed
through ``provisioning_state``:

- Storage accounts: one synchronous update call per changed group, and a
  provisioning-state poll after create.
- Snapshots: a single merged create-or-update call; the long-running
  operation itself signals completion.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .clients import ResourceClient
from .config import Config
from .models import ResourceSpec, SnapshotSpec, StorageAccountSpec
from .reflector import SnapshotReflector, StorageAccountReflector
from .translator import SnapshotTranslator, StorageAccountTranslator


@dataclass
class ResourceAdapter:
    """Everything the reconciler needs to manage one resource kind."""

    kind: str
    spec_class: type[ResourceSpec]
    provider: str
    resource_type: str
    translator: Any
    reflector: Any
    client: ResourceClient
    poll_after_create: bool


def storage_account_adapter(config: Config, client: ResourceClient) -> ResourceAdapter:
    return ResourceAdapter(
        kind=StorageAccountSpec.KIND,
        spec_class=StorageAccountSpec,
        provider="Microsoft.Storage",
        resource_type="storageAccounts",
        translator=StorageAccountTranslator(
            encryption_key_source=config.encryption_key_source,
            default_access_tier=config.default_access_tier,
        ),
        reflector=StorageAccountReflector(),
        client=client,
        poll_after_create=True,
    )


def snapshot_adapter(config: Config, client: ResourceClient) -> ResourceAdapter:
    return ResourceAdapter(
        kind=SnapshotSpec.KIND,
        spec_class=SnapshotSpec,
        provider="Microsoft.Compute",
        resource_type="snapshots",
        translator=SnapshotTranslator(),
        reflector=SnapshotReflector(),
        client=client,
        poll_after_create=False,
    )


ADAPTER_FACTORIES = {
    StorageAccountSpec.KIND: storage_account_adapter,
    SnapshotSpec.KIND: snapshot_adapter,
}


def build_adapter(kind: str, config: Config, client: ResourceClient) -> ResourceAdapter:
    """Build the adapter for a resource kind.

    Raises:
        ValueError: If the kind is not supported.
    """
    factory = ADAPTER_FACTORIES.get(kind)
    if factory is None:
        raise ValueError(f"Unknown resource kind '{kind}'. Valid kinds: {list(ADAPTER_FACTORIES)}")
    return factory(config, client)
