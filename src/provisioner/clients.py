"""Remote resource clients.

The reconciler only talks to Azure through the narrow ``ResourceClient``
contract below. The concrete clients wrap the management SDKs:

- ``StorageAccountsClient``: azure-mgmt-storage ``storage_accounts`` operations
- ``SnapshotsClient``: azure-mgmt-compute ``snapshots`` operations

Absence is reported by the SDK's ``ResourceNotFoundError``; every other
failure surfaces as ``HttpResponseError``/``AzureError`` unchanged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.storage import StorageManagementClient

from .errors import PollTimeoutError

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential
    from azure.core.polling import LROPoller

    from .config import Config

logger = logging.getLogger(__name__)


class OperationHandle:
    """Correlation token for an accepted remote operation.

    Wraps an SDK ``LROPoller``, or the result of a call the SDK already
    completed synchronously. Discard it once ``wait`` returns.
    """

    def __init__(self, poller: LROPoller[Any] | None = None, result: Any = None) -> None:
        self._poller = poller
        self._result = result

    @classmethod
    def completed(cls, result: Any = None) -> OperationHandle:
        """Handle for an operation that finished inside the call."""
        return cls(result=result)

    @property
    def done(self) -> bool:
        return self._poller is None or self._poller.done()

    def wait(self, timeout_seconds: float) -> Any:
        """Block until the operation completes.

        Returns:
            The operation result, if the SDK returns one.

        Raises:
            PollTimeoutError: If the operation is still running at the deadline.
            AzureError: If the operation failed remotely.
        """
        if self._poller is None:
            return self._result

        self._poller.wait(timeout=timeout_seconds)
        if not self._poller.done():
            raise PollTimeoutError(timeout_seconds, str(self._poller.status()))
        return self._poller.result()


class ResourceClient(Protocol):
    """Operations the reconciler needs from the remote control plane."""

    def create(self, resource_group: str, name: str, request: Any) -> OperationHandle: ...

    def update(self, resource_group: str, name: str, request: Any) -> OperationHandle: ...

    def delete(self, resource_group: str, name: str) -> OperationHandle: ...

    def get(self, resource_group: str, name: str) -> Any:
        """Return the remote representation.

        Raises:
            ResourceNotFoundError: If the resource does not exist.
        """
        ...

    def list_secrets(self, resource_group: str, name: str) -> list[str]: ...


class StorageAccountsClient:
    """Storage account operations on ``StorageManagementClient``."""

    def __init__(self, client: StorageManagementClient) -> None:
        self._operations = client.storage_accounts

    def create(self, resource_group: str, name: str, request: Any) -> OperationHandle:
        logger.debug(
            "Creating storage account",
            extra={"resource_name": name, "resource_group": resource_group},
        )
        return OperationHandle(self._operations.begin_create(resource_group, name, request))

    def update(self, resource_group: str, name: str, request: Any) -> OperationHandle:
        # Account updates are synchronous in the storage API
        return OperationHandle.completed(self._operations.update(resource_group, name, request))

    def delete(self, resource_group: str, name: str) -> OperationHandle:
        return OperationHandle.completed(self._operations.delete(resource_group, name))

    def get(self, resource_group: str, name: str) -> Any:
        return self._operations.get_properties(resource_group, name)

    def list_secrets(self, resource_group: str, name: str) -> list[str]:
        """Return the account key values, primary first."""
        result = self._operations.list_keys(resource_group, name)
        return [key.value or "" for key in (result.keys or [])]


class SnapshotsClient:
    """Snapshot operations on ``ComputeManagementClient``."""

    def __init__(self, client: ComputeManagementClient) -> None:
        self._operations = client.snapshots

    def create(self, resource_group: str, name: str, request: Any) -> OperationHandle:
        logger.debug(
            "Creating snapshot", extra={"resource_name": name, "resource_group": resource_group}
        )
        return OperationHandle(
            self._operations.begin_create_or_update(resource_group, name, request)
        )

    def update(self, resource_group: str, name: str, request: Any) -> OperationHandle:
        # Snapshots are replaced wholesale through create-or-update
        return OperationHandle(
            self._operations.begin_create_or_update(resource_group, name, request)
        )

    def delete(self, resource_group: str, name: str) -> OperationHandle:
        return OperationHandle(self._operations.begin_delete(resource_group, name))

    def get(self, resource_group: str, name: str) -> Any:
        return self._operations.get(resource_group, name)

    def list_secrets(self, resource_group: str, name: str) -> list[str]:
        return []


def build_client(kind: str, config: Config, credential: TokenCredential) -> ResourceClient:
    """Construct the SDK-backed client for a resource kind.

    Raises:
        ValueError: If the kind is not supported.
    """
    if kind == "StorageAccount":
        return StorageAccountsClient(
            StorageManagementClient(
                credential=credential,
                subscription_id=config.subscription_id,
            )
        )
    if kind == "Snapshot":
        return SnapshotsClient(
            ComputeManagementClient(
                credential=credential,
                subscription_id=config.subscription_id,
            )
        )
    raise ValueError(f"No client for resource kind '{kind}'")
