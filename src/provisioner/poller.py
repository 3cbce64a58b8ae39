"""Operation poller for asynchronously provisioned resources.

Azure accepts a create and reports completion through the resource's
``provisioning_state``. The poller refreshes that state on a fixed interval
until it reaches a target, leaves the pending set, or the deadline passes.

Clock and sleeper are injected so tests run in zero wall-clock time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Collection
from enum import Enum
from typing import Any

from .errors import PollTimeoutError, UnexpectedTerminalStateError

logger = logging.getLogger(__name__)


class ProvisioningState(str, Enum):
    """Provisioning states reported by Azure Resource Manager."""

    CREATING = "Creating"
    RESOLVING_DNS = "ResolvingDNS"
    UPDATING = "Updating"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"


# Storage accounts stay in ResolvingDNS for a while after create
CREATE_PENDING_STATES = frozenset(
    {
        ProvisioningState.CREATING.value,
        ProvisioningState.RESOLVING_DNS.value,
        ProvisioningState.UPDATING.value,
    }
)
CREATE_TARGET_STATES = frozenset({ProvisioningState.SUCCEEDED.value})


def state_value(state: Any) -> str:
    """Normalize an SDK enum member, plain string, or None to its string value."""
    if state is None:
        return ""
    return str(getattr(state, "value", state))


class OperationPoller:
    """Polls a refresh callable until a terminal provisioning state.

    Args:
        clock: Monotonic time source in seconds.
        sleep: Sleeper called between polls.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep

    def await_terminal(
        self,
        refresh: Callable[[], Any],
        pending: Collection[str],
        target: Collection[str],
        timeout_seconds: float,
        poll_interval_seconds: float,
    ) -> str:
        """Poll ``refresh`` until it reports a state in ``target``.

        The first poll happens immediately. Errors raised by ``refresh``
        propagate unchanged.

        Args:
            refresh: Returns the current provisioning state.
            pending: States that mean "keep waiting".
            target: States that mean "done".
            timeout_seconds: Deadline measured from the first poll.
            poll_interval_seconds: Fixed pause between polls.

        Returns:
            The target state that was observed.

        Raises:
            UnexpectedTerminalStateError: A state outside pending and target.
            PollTimeoutError: The deadline passed while still pending.
        """
        deadline = self._clock() + timeout_seconds
        polls = 0

        while True:
            state = state_value(refresh())
            polls += 1

            if state in target:
                logger.debug(
                    "Provisioning reached target state",
                    extra={"state": state, "polls": polls},
                )
                return state

            if state not in pending:
                raise UnexpectedTerminalStateError(state, target)

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise PollTimeoutError(timeout_seconds, state)

            logger.debug(
                "Provisioning pending",
                extra={"state": state, "polls": polls, "remaining_seconds": remaining},
            )
            self._sleep(min(poll_interval_seconds, remaining))
