"""Mock Azure storage and compute management state and operations.

Remote representations are plain dataclasses with the same attribute
names the Azure SDK models expose, so the reflectors read them unchanged.
Requests arrive as real SDK request models built by the translators.
"""

from __future__ import annotations

import copy
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from azure.core.exceptions import AzureError, ResourceNotFoundError

SUCCEEDED = "Succeeded"


# =============================================================================
# Remote representations (SDK attribute shapes)
# =============================================================================


@dataclass
class MockSku:
    name: str


@dataclass
class MockEndpoints:
    blob: str | None = None
    queue: str | None = None
    table: str | None = None
    file: str | None = None


@dataclass
class MockCustomDomain:
    name: str
    use_sub_domain_name: bool | None = None


@dataclass
class MockEncryptionService:
    enabled: bool | None = None


@dataclass
class MockEncryptionServices:
    blob: MockEncryptionService | None = None
    file: MockEncryptionService | None = None


@dataclass
class MockEncryption:
    services: MockEncryptionServices | None = None
    key_source: str = "Microsoft.Storage"


@dataclass
class MockStorageAccount:
    """Mirrors ``azure.mgmt.storage.models.StorageAccount``."""

    id: str
    name: str
    location: str
    kind: str
    sku: MockSku
    tags: dict[str, str] | None = None
    access_tier: str | None = None
    custom_domain: MockCustomDomain | None = None
    encryption: MockEncryption | None = None
    enable_https_traffic_only: bool | None = None
    primary_location: str | None = None
    secondary_location: str | None = None
    primary_endpoints: MockEndpoints | None = None
    secondary_endpoints: MockEndpoints | None = None
    provisioning_state: str = SUCCEEDED


@dataclass
class MockStorageAccountKey:
    key_name: str
    value: str | None


@dataclass
class MockListKeysResult:
    keys: list[MockStorageAccountKey] | None = None


@dataclass
class MockCreationData:
    create_option: str
    source_uri: str | None = None
    source_resource_id: str | None = None
    storage_account_id: str | None = None


@dataclass
class MockSnapshot:
    """Mirrors ``azure.mgmt.compute.models.Snapshot``."""

    id: str
    name: str
    location: str
    creation_data: MockCreationData | None = None
    tags: dict[str, str] | None = None
    disk_size_gb: int | None = None
    # The SDK request model is kept as-is; it already has the right shape
    encryption_settings_collection: Any = None
    provisioning_state: str = SUCCEEDED


@dataclass
class MockCall:
    """One recorded SDK call."""

    operation: str
    resource_group: str
    name: str
    parameters: Any = None


@dataclass
class _InjectedError:
    error: AzureError
    call_number: int
    apply_first: bool


# =============================================================================
# Shared state
# =============================================================================


class MockResourceState:
    """In-memory Azure state shared by the mock management clients.

    Supports:
    - Scripted provisioning states returned by successive reads
    - Error injection on the n-th call of an operation
    - A call log for asserting order and count of remote calls
    """

    GEO_REDUNDANT = ("GRS", "RAGRS")

    def __init__(self, subscription_id: str) -> None:
        self.subscription_id = subscription_id
        self.storage_accounts: dict[tuple[str, str], MockStorageAccount] = {}
        self.account_keys: dict[tuple[str, str], list[str | None]] = {}
        self.snapshots: dict[tuple[str, str], MockSnapshot] = {}
        self.calls: list[MockCall] = []
        self._call_counts: dict[str, int] = defaultdict(int)
        self._errors: dict[str, list[_InjectedError]] = defaultdict(list)
        self._provisioning_scripts: dict[tuple[str, str], list[str]] = {}

    # -------------------------------------------------------------------------
    # Test controls
    # -------------------------------------------------------------------------

    def inject_error(
        self,
        operation: str,
        error: AzureError,
        *,
        call_number: int = 1,
        apply_first: bool = False,
    ) -> None:
        """Fail the ``call_number``-th call of ``operation``.

        Args:
            operation: SDK method name, e.g. ``begin_create`` or ``update``.
            error: Exception to raise.
            call_number: Which call fails, counting from 1.
            apply_first: Apply the call's effect before failing, like a
                create that succeeds remotely but reports an error.
        """
        self._errors[operation].append(_InjectedError(error, call_number, apply_first))

    def script_provisioning_states(self, resource_group: str, name: str, states: list[str]) -> None:
        """Return ``states`` from successive reads; the last one sticks."""
        self._provisioning_scripts[(resource_group, name)] = list(states)

    def calls_for(self, operation: str) -> list[MockCall]:
        return [call for call in self.calls if call.operation == operation]

    @property
    def mutating_calls(self) -> list[MockCall]:
        """Calls that change remote state."""
        readers = ("get", "get_properties", "list_keys")
        return [call for call in self.calls if call.operation not in readers]

    def resource_id(self, provider: str, resource_type: str, resource_group: str, name: str) -> str:
        return (
            f"/subscriptions/{self.subscription_id}/resourceGroups/{resource_group}"
            f"/providers/{provider}/{resource_type}/{name}"
        )

    # -------------------------------------------------------------------------
    # Call bookkeeping
    # -------------------------------------------------------------------------

    def record(
        self, operation: str, resource_group: str, name: str, parameters: Any = None
    ) -> _InjectedError | None:
        """Log a call and return the error injected for it, if any."""
        self.calls.append(MockCall(operation, resource_group, name, parameters))
        self._call_counts[operation] += 1
        count = self._call_counts[operation]
        for injected in self._errors[operation]:
            if injected.call_number == count:
                return injected
        return None

    def next_provisioning_state(self, resource_group: str, name: str) -> str | None:
        script = self._provisioning_scripts.get((resource_group, name))
        if not script:
            return None
        return script.pop(0) if len(script) > 1 else script[0]

    # -------------------------------------------------------------------------
    # Storage accounts
    # -------------------------------------------------------------------------

    def put_storage_account(self, resource_group: str, name: str, parameters: Any) -> None:
        """Create a storage account from ``StorageAccountCreateParameters``."""
        sku_name = parameters.sku.name
        replication = sku_name.split("_")[-1]
        geo = replication in self.GEO_REDUNDANT

        services = parameters.encryption.services if parameters.encryption else None
        account = MockStorageAccount(
            id=self.resource_id("Microsoft.Storage", "storageAccounts", resource_group, name),
            name=name,
            location=parameters.location,
            kind=parameters.kind,
            sku=MockSku(sku_name),
            tags=dict(parameters.tags or {}),
            access_tier=parameters.access_tier,
            encryption=MockEncryption(
                services=MockEncryptionServices(
                    blob=_service(services.blob if services else None),
                    file=_service(services.file if services else None),
                ),
                key_source=parameters.encryption.key_source if parameters.encryption else "",
            ),
            enable_https_traffic_only=parameters.enable_https_traffic_only,
            primary_location=parameters.location,
            secondary_location="northeurope" if geo else None,
            primary_endpoints=MockEndpoints(
                blob=f"https://{name}.blob.core.windows.net/",
                queue=f"https://{name}.queue.core.windows.net/",
                table=f"https://{name}.table.core.windows.net/",
                file=f"https://{name}.file.core.windows.net/",
            ),
            # Only read-access geo-redundant accounts expose secondary endpoints
            secondary_endpoints=(
                MockEndpoints(
                    blob=f"https://{name}-secondary.blob.core.windows.net/",
                    queue=f"https://{name}-secondary.queue.core.windows.net/",
                    table=f"https://{name}-secondary.table.core.windows.net/",
                )
                if replication == "RAGRS"
                else None
            ),
        )
        if parameters.custom_domain is not None:
            account.custom_domain = MockCustomDomain(
                parameters.custom_domain.name, parameters.custom_domain.use_sub_domain_name
            )

        self.storage_accounts[(resource_group, name)] = account
        self.account_keys[(resource_group, name)] = [f"{name}-key1", f"{name}-key2"]

    def patch_storage_account(self, resource_group: str, name: str, parameters: Any) -> None:
        """Apply the non-None fields of ``StorageAccountUpdateParameters``."""
        account = self.get_storage_account(resource_group, name)
        if parameters.sku is not None:
            account.sku = MockSku(parameters.sku.name)
        if parameters.access_tier is not None:
            account.access_tier = parameters.access_tier
        if parameters.tags is not None:
            account.tags = dict(parameters.tags)
        if parameters.encryption is not None:
            services = parameters.encryption.services
            current = account.encryption.services if account.encryption else None
            current = current or MockEncryptionServices()
            if services.blob is not None:
                current.blob = _service(services.blob)
            if services.file is not None:
                current.file = _service(services.file)
            account.encryption = MockEncryption(current, parameters.encryption.key_source)
        if parameters.custom_domain is not None:
            domain = parameters.custom_domain
            account.custom_domain = (
                MockCustomDomain(domain.name, domain.use_sub_domain_name) if domain.name else None
            )
        if parameters.enable_https_traffic_only is not None:
            account.enable_https_traffic_only = parameters.enable_https_traffic_only

    def get_storage_account(self, resource_group: str, name: str) -> MockStorageAccount:
        account = self.storage_accounts.get((resource_group, name))
        if account is None:
            raise ResourceNotFoundError(
                message=f"The storage account {name} was not found."
            )
        return account

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def put_snapshot(self, resource_group: str, name: str, snapshot: Any) -> MockSnapshot:
        """Create or replace a snapshot from an SDK ``Snapshot`` model."""
        data = snapshot.creation_data
        remote = MockSnapshot(
            id=self.resource_id("Microsoft.Compute", "snapshots", resource_group, name),
            name=name,
            location=snapshot.location,
            creation_data=MockCreationData(
                create_option=data.create_option,
                source_uri=data.source_uri,
                source_resource_id=data.source_resource_id,
                storage_account_id=data.storage_account_id,
            ),
            tags=dict(snapshot.tags or {}),
            # Azure reports the source disk size when none was requested
            disk_size_gb=snapshot.disk_size_gb or 128,
            encryption_settings_collection=snapshot.encryption_settings_collection,
        )
        self.snapshots[(resource_group, name)] = remote
        return remote

    def get_snapshot(self, resource_group: str, name: str) -> MockSnapshot:
        snapshot = self.snapshots.get((resource_group, name))
        if snapshot is None:
            raise ResourceNotFoundError(
                message=f"The Resource 'Microsoft.Compute/snapshots/{name}' was not found."
            )
        return snapshot


def _service(service: Any) -> MockEncryptionService | None:
    if service is None:
        return None
    return MockEncryptionService(enabled=service.enabled)


# =============================================================================
# Mock SDK clients
# =============================================================================


class MockLROPoller:
    """Mock Long-Running Operation poller.

    Completes immediately; raises the configured error from ``result()``.
    """

    def __init__(self, result: Any = None, error: AzureError | None = None) -> None:
        self._result = result
        self._error = error

    def result(self, timeout: float | None = None) -> Any:
        if self._error is not None:
            raise self._error
        return self._result

    def wait(self, timeout: float | None = None) -> None:
        pass

    def done(self) -> bool:
        return True

    def status(self) -> str:
        return "Failed" if self._error else SUCCEEDED


class _MockStorageAccountsOperations:
    """Mock ``StorageManagementClient.storage_accounts``."""

    def __init__(self, state: MockResourceState) -> None:
        self._state = state

    def begin_create(
        self, resource_group_name: str, account_name: str, parameters: Any
    ) -> MockLROPoller:
        injected = self._state.record("begin_create", resource_group_name, account_name, parameters)
        if injected is not None and not injected.apply_first:
            raise injected.error

        self._state.put_storage_account(resource_group_name, account_name, parameters)
        if injected is not None:
            return MockLROPoller(error=injected.error)
        return MockLROPoller(
            copy.deepcopy(self._state.get_storage_account(resource_group_name, account_name))
        )

    def update(
        self, resource_group_name: str, account_name: str, parameters: Any
    ) -> MockStorageAccount:
        injected = self._state.record("update", resource_group_name, account_name, parameters)
        if injected is not None:
            if injected.apply_first:
                self._state.patch_storage_account(resource_group_name, account_name, parameters)
            raise injected.error

        self._state.patch_storage_account(resource_group_name, account_name, parameters)
        return copy.deepcopy(self._state.get_storage_account(resource_group_name, account_name))

    def delete(self, resource_group_name: str, account_name: str) -> None:
        injected = self._state.record("delete", resource_group_name, account_name)
        if injected is not None:
            raise injected.error

        self._state.get_storage_account(resource_group_name, account_name)
        del self._state.storage_accounts[(resource_group_name, account_name)]
        self._state.account_keys.pop((resource_group_name, account_name), None)

    def get_properties(self, resource_group_name: str, account_name: str) -> MockStorageAccount:
        injected = self._state.record("get_properties", resource_group_name, account_name)
        if injected is not None:
            raise injected.error

        account = self._state.get_storage_account(resource_group_name, account_name)
        state = self._state.next_provisioning_state(resource_group_name, account_name)
        if state is not None:
            account.provisioning_state = state
        return copy.deepcopy(account)

    def list_keys(self, resource_group_name: str, account_name: str) -> MockListKeysResult:
        injected = self._state.record("list_keys", resource_group_name, account_name)
        if injected is not None:
            raise injected.error

        self._state.get_storage_account(resource_group_name, account_name)
        values = self._state.account_keys.get((resource_group_name, account_name), [])
        return MockListKeysResult(
            keys=[
                MockStorageAccountKey(key_name=f"key{i}", value=value)
                for i, value in enumerate(values, start=1)
            ]
        )


class _MockSnapshotsOperations:
    """Mock ``ComputeManagementClient.snapshots``."""

    def __init__(self, state: MockResourceState) -> None:
        self._state = state

    def begin_create_or_update(
        self, resource_group_name: str, snapshot_name: str, snapshot: Any
    ) -> MockLROPoller:
        injected = self._state.record(
            "begin_create_or_update", resource_group_name, snapshot_name, snapshot
        )
        if injected is not None and not injected.apply_first:
            raise injected.error

        remote = self._state.put_snapshot(resource_group_name, snapshot_name, snapshot)
        if injected is not None:
            return MockLROPoller(error=injected.error)
        return MockLROPoller(copy.deepcopy(remote))

    def begin_delete(self, resource_group_name: str, snapshot_name: str) -> MockLROPoller:
        injected = self._state.record("begin_delete", resource_group_name, snapshot_name)
        if injected is not None:
            return MockLROPoller(error=injected.error)

        self._state.get_snapshot(resource_group_name, snapshot_name)
        del self._state.snapshots[(resource_group_name, snapshot_name)]
        return MockLROPoller()

    def get(self, resource_group_name: str, snapshot_name: str) -> MockSnapshot:
        injected = self._state.record("get", resource_group_name, snapshot_name)
        if injected is not None:
            raise injected.error

        return copy.deepcopy(self._state.get_snapshot(resource_group_name, snapshot_name))


class MockStorageManagementClient:
    """Mock ``azure.mgmt.storage.StorageManagementClient``."""

    def __init__(
        self,
        state: MockResourceState,
        credential: Any = None,
        subscription_id: str | None = None,
    ) -> None:
        self.credential = credential
        self.subscription_id = subscription_id or state.subscription_id
        self.storage_accounts = _MockStorageAccountsOperations(state)


class MockComputeManagementClient:
    """Mock ``azure.mgmt.compute.ComputeManagementClient``."""

    def __init__(
        self,
        state: MockResourceState,
        credential: Any = None,
        subscription_id: str | None = None,
    ) -> None:
        self.credential = credential
        self.subscription_id = subscription_id or state.subscription_id
        self.snapshots = _MockSnapshotsOperations(state)


class MockClock:
    """Monotonic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
