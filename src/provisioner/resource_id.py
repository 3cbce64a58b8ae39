"""Azure resource ID parsing.

Azure resource IDs follow the pattern:
/subscriptions/{sub}/resourceGroups/{rg}/providers/{namespace}/{type}/{name}[/{type}/{name}...]
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import ResourceIdParseError


@dataclass(frozen=True)
class ResourceId:
    """Addressing coordinates extracted from an ARM resource ID."""

    subscription_id: str
    resource_group: str
    provider: str = ""
    # Remaining type/name pairs, e.g. {"storageAccounts": "mystorage"}
    path: dict[str, str] = field(default_factory=dict)

    def name_for(self, resource_type: str) -> str:
        """Return the resource name stored under ``resource_type``.

        Raises:
            ResourceIdParseError: If the ID has no such segment.
        """
        name = self.path.get(resource_type)
        if not name:
            raise ResourceIdParseError(
                f"Resource ID has no '{resource_type}' segment: {sorted(self.path)}"
            )
        return name


def parse_resource_id(resource_id: str) -> ResourceId:
    """Parse an ARM resource ID into its coordinates.

    Segment keys are matched exactly as ARM returns them, except
    ``resourceGroups`` which ARM occasionally lower-cases.

    Args:
        resource_id: Full ARM resource ID.

    Returns:
        Parsed ResourceId.

    Raises:
        ResourceIdParseError: If the ID is malformed.
    """
    if not resource_id:
        raise ResourceIdParseError("Resource ID cannot be empty")

    trimmed = resource_id.strip("/")
    components = trimmed.split("/")
    if len(components) % 2 != 0:
        raise ResourceIdParseError(
            f"Resource ID should have an even number of segments: {resource_id}"
        )

    pairs: dict[str, str] = {}
    for i in range(0, len(components), 2):
        key, value = components[i], components[i + 1]
        if not key or not value:
            raise ResourceIdParseError(f"Key/value cannot be empty strings in {resource_id}")
        if key.lower() == "resourcegroups":
            key = "resourceGroups"
        pairs[key] = value

    subscription_id = pairs.pop("subscriptions", "")
    if not subscription_id:
        raise ResourceIdParseError(f"No subscription ID found in: {resource_id}")

    resource_group = pairs.pop("resourceGroups", "")
    if not resource_group:
        raise ResourceIdParseError(f"No resource group name found in: {resource_id}")

    provider = pairs.pop("providers", "")

    return ResourceId(
        subscription_id=subscription_id,
        resource_group=resource_group,
        provider=provider,
        path=pairs,
    )


def format_resource_id(
    subscription_id: str,
    resource_group: str,
    provider: str,
    resource_type: str,
    name: str,
) -> str:
    """Build the ARM resource ID for a resource-group scoped resource."""
    return (
        f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
        f"/providers/{provider}/{resource_type}/{name}"
    )
