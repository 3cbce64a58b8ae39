"""Error taxonomy for resource lifecycle operations.

Remote absence is not represented here: the Azure SDK already raises
``azure.core.exceptions.ResourceNotFoundError`` for it, and the reconciler
absorbs that into a state transition. Transport and 5xx failures stay as the
SDK's ``HttpResponseError``/``AzureError`` and are chained as ``__cause__``
of the operation errors below.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import ResourceSpec


class ProvisioningError(Exception):
    """Base class for all lifecycle errors raised by the provisioner."""

    pass


class DesiredStateError(ProvisioningError):
    """The declared document holds an illegal field combination.

    Raised before any network call. Never retried: the caller must fix
    the document.
    """

    pass


class RequiresReplacementError(DesiredStateError):
    """A field that cannot be updated in place has changed."""

    def __init__(self, name: str, fields: list[str]) -> None:
        self.name = name
        self.fields = fields
        super().__init__(
            f"Changing {', '.join(fields)} of '{name}' requires destroying and "
            f"recreating the resource"
        )


class ResourceIdParseError(ProvisioningError):
    """The resource identifier is not a well-formed ARM resource ID."""

    pass


class RemoteStateError(ProvisioningError):
    """The remote representation does not have the shape we rely on."""

    pass


class ResourceOperationError(ProvisioningError):
    """A remote call for a named resource failed.

    Carries the coordinates so the failure can be correlated with the
    Azure activity log. The SDK error is chained as ``__cause__``.
    """

    operation = "operate on"

    def __init__(
        self,
        name: str,
        resource_group: str,
        detail: str = "",
        resource_id: str | None = None,
    ) -> None:
        self.name = name
        self.resource_group = resource_group
        self.resource_id = resource_id
        message = f"Failed to {self.operation} '{name}' (resource group '{resource_group}')"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ResourceCreateError(ResourceOperationError):
    """The create call failed.

    ``resource_id`` is set when the follow-up read still found the
    resource; it has already been handed to the state writer so a later
    delete can clean it up.
    """

    operation = "create"


class ResourceReadError(ResourceOperationError):
    """Reading the resource failed for a reason other than absence."""

    operation = "read"


class ResourceDeleteError(ResourceOperationError):
    """Deleting the resource failed for a reason other than absence."""

    operation = "delete"


class IdentityLossError(ResourceOperationError):
    """Create reported success but the resource is not discoverable yet.

    The remote control plane has not converged. Anything created may be
    orphaned, so this is always surfaced distinctly.
    """

    operation = "discover the identifier of"


class PartialApplyError(ResourceOperationError):
    """An update stopped partway through its field groups.

    Groups in ``applied_groups`` were accepted remotely and are reflected in
    ``persisted``; the failing group and everything after it were not.
    """

    operation = "update"

    def __init__(
        self,
        name: str,
        resource_group: str,
        group: str,
        applied_groups: list[str],
        persisted: ResourceSpec,
    ) -> None:
        self.group = group
        self.applied_groups = applied_groups
        self.persisted = persisted
        applied = ", ".join(applied_groups) if applied_groups else "none"
        super().__init__(
            name,
            resource_group,
            detail=f"group '{group}' failed (already applied: {applied})",
            resource_id=persisted.id,
        )


class UnexpectedTerminalStateError(ProvisioningError):
    """The poller observed a state that is neither pending nor the target."""

    def __init__(self, state: str, target: Any) -> None:
        self.state = state
        super().__init__(f"Unexpected provisioning state '{state}', wanted {sorted(target)}")


class PollTimeoutError(ProvisioningError):
    """The poller deadline expired while the state was still pending."""

    def __init__(self, timeout_seconds: float, last_state: str) -> None:
        self.timeout_seconds = timeout_seconds
        self.last_state = last_state
        super().__init__(
            f"Timed out after {timeout_seconds:.0f}s waiting for provisioning "
            f"(last state '{last_state}')"
        )
