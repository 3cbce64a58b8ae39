"""Pytest configuration and fixtures."""

import logging
import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from azure_mock import (  # noqa: E402
    MockClock,
    MockComputeManagementClient,
    MockResourceState,
    MockStorageManagementClient,
)
from provisioner.adapters import snapshot_adapter, storage_account_adapter  # noqa: E402
from provisioner.clients import SnapshotsClient, StorageAccountsClient  # noqa: E402
from provisioner.config import Config  # noqa: E402
from provisioner.poller import OperationPoller  # noqa: E402
from provisioner.reconciler import ResourceReconciler  # noqa: E402

SUBSCRIPTION_ID = "12345678-1234-1234-1234-123456789012"
RESOURCE_GROUP = "rg-storage"


@pytest.fixture(autouse=True)
def debug_logging(caplog: pytest.LogCaptureFixture) -> None:
    """Capture every log level so each logging call site runs."""
    caplog.set_level(logging.DEBUG)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Configuration with short, valid timeouts."""
    return Config(
        subscription_id=SUBSCRIPTION_ID,
        state_dir=tmp_path / "state",
        create_timeout_seconds=60,
        poll_interval_seconds=15,
        delete_timeout_seconds=60,
    )


@pytest.fixture
def azure_state() -> MockResourceState:
    return MockResourceState(SUBSCRIPTION_ID)


@pytest.fixture
def clock() -> MockClock:
    return MockClock()


@pytest.fixture
def written() -> list:
    """Every document handed to the state writer, in order."""
    return []


@pytest.fixture
def storage_reconciler(
    config: Config, azure_state: MockResourceState, clock: MockClock, written: list
) -> ResourceReconciler:
    client = StorageAccountsClient(MockStorageManagementClient(azure_state))
    return ResourceReconciler(
        adapter=storage_account_adapter(config, client),
        config=config,
        poller=OperationPoller(clock=clock.monotonic, sleep=clock.sleep),
        state_writer=written.append,
    )


@pytest.fixture
def snapshot_reconciler(
    config: Config, azure_state: MockResourceState, clock: MockClock, written: list
) -> ResourceReconciler:
    client = SnapshotsClient(MockComputeManagementClient(azure_state))
    return ResourceReconciler(
        adapter=snapshot_adapter(config, client),
        config=config,
        poller=OperationPoller(clock=clock.monotonic, sleep=clock.sleep),
        state_writer=written.append,
    )
