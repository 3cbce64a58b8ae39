"""Field-level change tracking between a prior and a desired document.

Only declared fields are compared; ``id`` and computed fields never count as
changes. An optional-computed field left as None in the desired document is
not a change either: Azure owns its value until the caller declares one.

During an update the tracker also keeps the "persisted" view: the prior
document with every changed field that has been accepted remotely so far
replaced by its desired value. If an update stops partway, that view is what
the caller must store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from .models import ResourceSpec

logger = logging.getLogger(__name__)


def _same_value(prior: Any, desired: Any, ignore_case: bool = False) -> bool:
    if ignore_case and isinstance(prior, str) and isinstance(desired, str):
        return prior.lower() == desired.lower()
    return prior == desired


class FieldChanges:
    """Per-field diff of two documents of the same kind."""

    def __init__(self, prior: ResourceSpec, desired: ResourceSpec) -> None:
        if type(prior) is not type(desired):
            raise TypeError(
                f"Cannot diff {type(prior).__name__} against {type(desired).__name__}"
            )

        self._prior = prior
        self._desired = desired
        self._persisted: dict[str, Any] = {}

        prior_values = prior.model_dump(mode="json")
        desired_values = desired.model_dump(mode="json")
        self._changed = frozenset(
            name
            for name in desired.declared_fields()
            if not _same_value(
                prior_values.get(name),
                desired_values.get(name),
                ignore_case=name in desired.CASE_INSENSITIVE_FIELDS,
            )
            and not (
                name in desired.OPTIONAL_COMPUTED_FIELDS and desired_values.get(name) is None
            )
        )

    @property
    def changed_fields(self) -> frozenset[str]:
        """Names of all declared fields that differ."""
        return self._changed

    def has_change(self, field_name: str) -> bool:
        """Check whether a single field differs."""
        return field_name in self._changed

    def has_any_change(self, field_names: Iterable[str]) -> bool:
        """Check whether any of the given fields differ."""
        return any(name in self._changed for name in field_names)

    def __bool__(self) -> bool:
        return bool(self._changed)

    def mark_persisted(self, field_names: Iterable[str]) -> None:
        """Record that the desired values of ``field_names`` are now live remotely."""
        for name in field_names:
            if name not in self._changed:
                continue
            self._persisted[name] = getattr(self._desired, name)
        logger.debug(
            "Fields persisted",
            extra={"resource": self._desired.name, "fields": sorted(self._persisted)},
        )

    @property
    def persisted(self) -> ResourceSpec:
        """The prior document with every persisted field brought up to date."""
        return self._prior.model_copy(update=self._persisted)
