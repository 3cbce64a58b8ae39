"""Azure API mock for testing without Azure connectivity.

Key Features:
- In-memory storage account and snapshot state
- Scripted provisioning states for create polling
- Error injection on the n-th call of any SDK operation
- A call log for asserting remote call order and count
- Managed Identity simulation
- A clock whose sleep advances instantly

Usage:
    from azure_mock import MockAzureContext

    with MockAzureContext(subscription_id) as ctx:
        result = CliRunner().invoke(cli, ["apply", "storage.yaml"])

        assert ctx.state.calls_for("begin_create")
"""

from .context import MockAzureContext
from .credential import MockManagedIdentityCredential, create_mock_credential
from .resources import (
    MockCall,
    MockClock,
    MockComputeManagementClient,
    MockLROPoller,
    MockResourceState,
    MockStorageManagementClient,
)

__all__ = [
    "MockAzureContext",
    "MockCall",
    "MockClock",
    "MockComputeManagementClient",
    "MockLROPoller",
    "MockManagedIdentityCredential",
    "MockResourceState",
    "MockStorageManagementClient",
    "create_mock_credential",
]
