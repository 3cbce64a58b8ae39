"""Resource reconciliation engine.

The reconciler converges one remote resource to a declared document:

    Absent --create--> Creating --poll--> Reconciled
    Reconciled --update(group)...--> Reconciled
    Reconciled --delete--> Absent

It never caches documents; the caller passes the prior document in and
receives the new one back. Every identifier the remote side hands out is
given to the injected state writer before any error is raised, so a
partially successful create can always be cleaned up later.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

from azure.core.exceptions import AzureError, ResourceNotFoundError

from .adapters import ResourceAdapter
from .changes import FieldChanges
from .config import Config
from .errors import (
    DesiredStateError,
    IdentityLossError,
    PartialApplyError,
    PollTimeoutError,
    RequiresReplacementError,
    ResourceCreateError,
    ResourceDeleteError,
    ResourceIdParseError,
    ResourceReadError,
)
from .models import ResourceSpec
from .poller import CREATE_PENDING_STATES, CREATE_TARGET_STATES, OperationPoller
from .provenance import OperationProvenance, ProvenanceLogger
from .resource_id import parse_resource_id

logger = logging.getLogger(__name__)

StateWriter = Callable[[ResourceSpec], None]

# Failures of an accepted operation: remote errors or the wait deadline
OPERATION_ERRORS = (AzureError, PollTimeoutError)


class PlanAction(str, Enum):
    """What ``apply`` would do."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    NOOP = "noop"


@dataclass(frozen=True)
class Plan:
    """Outcome of comparing a prior document with a desired one.

    Attributes:
        action: The lifecycle operation ``apply`` would run.
        groups: Update groups that would be sent, in order.
        replace_fields: Force-new fields that changed (replace only).
    """

    action: PlanAction
    groups: tuple[str, ...] = ()
    replace_fields: tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        return self.action != PlanAction.NOOP


class ResourceReconciler:
    """Drives the lifecycle of one resource kind.

    Args:
        adapter: Translator, reflector and client for the kind.
        config: Timeouts and audit settings.
        poller: Provisioning-state poller; a real-time one by default.
        state_writer: Receives every document whose identifier changed.
        provenance_logger: Audit sink; built from config by default.
    """

    def __init__(
        self,
        adapter: ResourceAdapter,
        config: Config,
        poller: OperationPoller | None = None,
        state_writer: StateWriter | None = None,
        provenance_logger: ProvenanceLogger | None = None,
    ) -> None:
        self._adapter = adapter
        self._config = config
        self._poller = poller or OperationPoller()
        self._state_writer = state_writer
        self._provenance = provenance_logger or ProvenanceLogger(
            enabled=config.enable_audit_logging
        )

    @property
    def adapter(self) -> ResourceAdapter:
        return self._adapter

    # =========================================================================
    # Lifecycle operations
    # =========================================================================

    def create(self, desired: ResourceSpec) -> ResourceSpec:
        """Create the resource and return its reconciled document.

        The create is followed by a read regardless of its outcome. If that
        read finds the resource, its identifier is persisted before any
        error is raised.

        Raises:
            DesiredStateError: Invalid document; nothing was sent.
            ResourceCreateError: The create failed (carries any recovered ID).
            IdentityLossError: The create succeeded but the resource was not found.
            UnexpectedTerminalStateError: Provisioning ended in Failed or Canceled.
            PollTimeoutError: Provisioning did not finish in time.
        """
        name = desired.name
        resource_group = desired.resource_group_name
        client = self._adapter.client

        with self._track("create", desired) as record:
            request = self._adapter.translator.for_create(desired)

            create_error: Exception | None = None
            try:
                handle = client.create(resource_group, name, request)
                handle.wait(self._config.create_timeout_seconds)
            except OPERATION_ERRORS as e:
                create_error = e
                logger.warning(
                    "Create failed, checking whether the resource exists anyway",
                    extra={"kind": self._adapter.kind, "resource_name": name, "error": str(e)},
                )

            remote = None
            read_error: AzureError | None = None
            try:
                remote = client.get(resource_group, name)
            except AzureError as e:
                read_error = e

            resource_id = getattr(remote, "id", None) if remote is not None else None
            persisted = desired.model_copy(update={"id": resource_id})
            if resource_id:
                record.resource_id = resource_id
                self._write_state(persisted)

            if create_error is not None:
                raise ResourceCreateError(
                    name,
                    resource_group,
                    detail=str(create_error),
                    resource_id=resource_id,
                ) from create_error

            if read_error is not None and not isinstance(read_error, ResourceNotFoundError):
                raise ResourceReadError(
                    name, resource_group, detail=str(read_error), resource_id=resource_id
                ) from read_error

            if not resource_id:
                raise IdentityLossError(
                    name,
                    resource_group,
                    detail="create succeeded but the resource has no identifier yet",
                ) from read_error

            if self._adapter.poll_after_create:
                self._poller.await_terminal(
                    refresh=lambda: client.get(resource_group, name).provisioning_state,
                    pending=CREATE_PENDING_STATES,
                    target=CREATE_TARGET_STATES,
                    timeout_seconds=self._config.create_timeout_seconds,
                    poll_interval_seconds=self._config.poll_interval_seconds,
                )

            logger.info(
                "Resource created",
                extra={"kind": self._adapter.kind, "resource_id": resource_id},
            )
            return self._read(persisted)

    def read(self, current: ResourceSpec) -> ResourceSpec:
        """Refresh a document from Azure.

        A resource deleted out of band comes back with ``id=None``; that is
        a state transition, not an error.

        Raises:
            ResourceReadError: Azure could not be read; state is untouched.
        """
        with self._track("read", current) as record:
            result = self._read(current)
            record.resource_absent = result.id is None
            return result

    def update(self, prior: ResourceSpec, desired: ResourceSpec) -> ResourceSpec:
        """Push changed field groups, in order, and return the persisted document.

        The returned document is ``prior`` with every applied field brought
        up to date; it is not re-read from Azure.

        Raises:
            RequiresReplacementError: A force-new field changed.
            DesiredStateError: Invalid document, or ``prior`` has no identifier.
            PartialApplyError: A group failed; earlier groups stay applied.
        """
        if not prior.id:
            raise DesiredStateError(f"Cannot update '{prior.name}': it has no identifier")

        changes = FieldChanges(prior, desired)
        replace_fields = self._replace_fields(changes)
        if replace_fields:
            raise RequiresReplacementError(desired.name, replace_fields)

        resource_group, name = self._coordinates(prior.id)

        with self._track("update", prior) as record:
            requests = self._adapter.translator.for_update(desired, changes)

            for request in requests:
                try:
                    handle = self._adapter.client.update(
                        resource_group, name, request.parameters
                    )
                    handle.wait(self._config.create_timeout_seconds)
                except OPERATION_ERRORS as e:
                    persisted = changes.persisted
                    self._write_state(persisted)
                    raise PartialApplyError(
                        name,
                        resource_group,
                        group=request.group.name,
                        applied_groups=list(record.groups_applied),
                        persisted=persisted,
                    ) from e

                changes.mark_persisted(request.group.fields)
                record.groups_applied.append(request.group.name)
                logger.info(
                    "Update group applied",
                    extra={"resource_id": prior.id, "group": request.group.name},
                )

            persisted = changes.persisted
            if requests:
                self._write_state(persisted)
            return persisted

    def delete(self, current: ResourceSpec) -> ResourceSpec:
        """Delete the resource; already absent counts as success.

        Returns:
            The document with ``id`` cleared.

        Raises:
            ResourceDeleteError: Azure refused; state is untouched.
        """
        if not current.id:
            logger.debug("Nothing to delete", extra={"resource_name": current.name})
            return current

        resource_group, name = self._coordinates(current.id)

        with self._track("delete", current) as record:
            try:
                handle = self._adapter.client.delete(resource_group, name)
                handle.wait(self._config.delete_timeout_seconds)
            except ResourceNotFoundError:
                record.resource_absent = True
                logger.info("Resource already deleted", extra={"resource_id": current.id})
            except OPERATION_ERRORS as e:
                raise ResourceDeleteError(
                    name, resource_group, detail=str(e), resource_id=current.id
                ) from e

            absent = current.model_copy(update={"id": None})
            self._write_state(absent)
            return absent

    def import_resource(self, resource_id: str) -> ResourceSpec:
        """Adopt an existing resource by its ARM identifier.

        Raises:
            ResourceIdParseError: Malformed identifier.
            ResourceReadError: The resource does not exist or cannot be read.
        """
        resource_group, name = self._coordinates(resource_id)
        client = self._adapter.client

        with self._track_coordinates("import", name, resource_group, resource_id):
            try:
                remote = client.get(resource_group, name)
                secrets = client.list_secrets(resource_group, name)
            except ResourceNotFoundError as e:
                raise ResourceReadError(
                    name, resource_group, detail="resource does not exist", resource_id=resource_id
                ) from e
            except AzureError as e:
                raise ResourceReadError(
                    name, resource_group, detail=str(e), resource_id=resource_id
                ) from e

            imported = self._adapter.reflector.reflect(
                remote, secrets, resource_group_name=resource_group
            )
            self._write_state(imported)
            return imported

    # =========================================================================
    # Plan / apply
    # =========================================================================

    def plan(self, prior: ResourceSpec | None, desired: ResourceSpec) -> Plan:
        """Decide what ``apply`` would do, without any remote call.

        Raises:
            DesiredStateError: The desired document is invalid.
        """
        if prior is None or not prior.id:
            self._adapter.translator.for_create(desired)
            return Plan(PlanAction.CREATE)

        changes = FieldChanges(prior, desired)
        replace_fields = self._replace_fields(changes)
        if replace_fields:
            return Plan(PlanAction.REPLACE, replace_fields=tuple(replace_fields))

        requests = self._adapter.translator.for_update(desired, changes)
        if not requests:
            return Plan(PlanAction.NOOP)
        return Plan(PlanAction.UPDATE, groups=tuple(r.group.name for r in requests))

    def apply(
        self,
        prior: ResourceSpec | None,
        desired: ResourceSpec,
        allow_replace: bool = False,
    ) -> ResourceSpec:
        """Converge the resource to ``desired``.

        Raises:
            RequiresReplacementError: A replace is needed and not allowed.
        """
        plan = self.plan(prior, desired)
        logger.info(
            "Applying plan",
            extra={
                "resource_name": desired.name,
                "action": plan.action.value,
                "groups": plan.groups,
            },
        )

        if prior is None or plan.action == PlanAction.CREATE:
            return self.create(desired.model_copy(update={"id": None}))

        if plan.action == PlanAction.NOOP:
            return prior

        if plan.action == PlanAction.UPDATE:
            return self.update(prior, desired)

        if not allow_replace:
            raise RequiresReplacementError(desired.name, list(plan.replace_fields))
        self.delete(prior)
        return self.create(desired.model_copy(update={"id": None}))

    # =========================================================================
    # Internals
    # =========================================================================

    def _read(self, current: ResourceSpec) -> ResourceSpec:
        if not current.id:
            return current

        resource_group, name = self._coordinates(current.id)
        client = self._adapter.client

        try:
            remote = client.get(resource_group, name)
        except ResourceNotFoundError:
            logger.warning(
                "Resource no longer exists, removing identifier",
                extra={"resource_id": current.id},
            )
            absent = current.model_copy(update={"id": None})
            self._write_state(absent)
            return absent
        except AzureError as e:
            raise ResourceReadError(
                name, resource_group, detail=str(e), resource_id=current.id
            ) from e

        try:
            secrets = client.list_secrets(resource_group, name)
        except AzureError as e:
            raise ResourceReadError(
                name, resource_group, detail=f"listing keys: {e}", resource_id=current.id
            ) from e

        refreshed = self._adapter.reflector.reflect(
            remote, secrets, resource_group_name=resource_group, base=current
        )
        self._write_state(refreshed)
        return refreshed

    def _coordinates(self, resource_id: str) -> tuple[str, str]:
        """Resource group and name from an ID of this adapter's kind.

        Raises:
            ResourceIdParseError: Malformed ID, or one of another provider.
        """
        coordinates = parse_resource_id(resource_id)
        if coordinates.provider.lower() != self._adapter.provider.lower():
            raise ResourceIdParseError(
                f"'{resource_id}' is not a {self._adapter.provider} resource"
            )
        return coordinates.resource_group, coordinates.name_for(self._adapter.resource_type)

    def _replace_fields(self, changes: FieldChanges) -> list[str]:
        return [
            name
            for name in self._adapter.spec_class.FORCE_NEW_FIELDS
            if changes.has_change(name)
        ]

    def _write_state(self, document: ResourceSpec) -> None:
        if self._state_writer is not None:
            self._state_writer(document)

    @contextmanager
    def _track(self, operation: str, document: ResourceSpec) -> Iterator[OperationProvenance]:
        with self._track_coordinates(
            operation, document.name, document.resource_group_name, document.id
        ) as record:
            yield record

    @contextmanager
    def _track_coordinates(
        self,
        operation: str,
        name: str,
        resource_group: str,
        resource_id: str | None,
    ) -> Iterator[OperationProvenance]:
        """Emit one provenance record around a lifecycle operation."""
        record = self._provenance.create_provenance(
            operation=operation,
            kind=self._adapter.kind,
            name=name,
            resource_group=resource_group,
            resource_id=resource_id,
        )
        start = time.monotonic()
        try:
            yield record
        except Exception as e:
            record.error = str(e)
            record.error_type = type(e).__name__
            raise
        finally:
            record.duration_seconds = time.monotonic() - start
            self._provenance.log_provenance(record)
