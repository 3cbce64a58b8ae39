"""Tag codec between declared documents and the ARM wire format."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# ARM limits for resource tags
MAX_TAG_COUNT = 50
MAX_TAG_KEY_LENGTH = 512
MAX_TAG_VALUE_LENGTH = 256


def validate_tags(tags: Mapping[str, Any]) -> list[str]:
    """Return every problem with ``tags``; empty when valid."""
    errors: list[str] = []

    if len(tags) > MAX_TAG_COUNT:
        errors.append(f"a maximum of {MAX_TAG_COUNT} tags can be applied to each resource")

    for key, value in tags.items():
        if len(key) > MAX_TAG_KEY_LENGTH:
            errors.append(
                f"the maximum length for a tag key is {MAX_TAG_KEY_LENGTH} characters: {key!r}"
            )
        if value is not None and len(str(value)) > MAX_TAG_VALUE_LENGTH:
            errors.append(
                f"the maximum length for a tag value is {MAX_TAG_VALUE_LENGTH} characters: {key!r}"
            )

    return errors


def expand_tags(tags: Mapping[str, Any]) -> dict[str, str]:
    """Convert declared tags to the wire mapping (values always strings)."""
    return {key: "" if value is None else str(value) for key, value in tags.items()}


def flatten_tags(tags: Mapping[str, str | None] | None) -> dict[str, str]:
    """Convert remote tags to the declared mapping; absent tags become ``{}``."""
    if not tags:
        return {}
    return {key: value or "" for key, value in tags.items()}
