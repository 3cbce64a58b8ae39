"""Resource document loading with validation.

SECURITY: File size is checked before reading to prevent DoS via large
files. Input validation is performed at the boundary.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import ResourceSpec, get_spec_class

logger = logging.getLogger(__name__)


class SpecLoadError(Exception):
    """Raised when document loading or validation fails."""

    pass


def read_yaml_mapping(path: Path, max_size_bytes: int = MAX_SPEC_FILE_SIZE_BYTES) -> dict[str, Any]:
    """Read a YAML file that must hold a mapping.

    Raises:
        SpecLoadError: If the file is missing, too large, unreadable or not a mapping.
    """
    if not path.exists():
        raise SpecLoadError(f"Spec file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat spec file {path}: {e}") from e

    if file_size > max_size_bytes:
        raise SpecLoadError(f"Spec file exceeds maximum size of {max_size_bytes} bytes: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read spec file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Spec file must contain a YAML mapping: {path}")
    return raw_data


def parse_resource_spec(
    raw_data: dict[str, Any], kind: str | None = None, source: str = "<document>"
) -> ResourceSpec:
    """Validate a raw mapping into the document class for its kind.

    Both a flat mapping with a top-level ``kind`` and a Kubernetes-style
    wrapper (``apiVersion``/``kind``/``spec``) are accepted.

    Args:
        raw_data: Parsed YAML content.
        kind: Resource kind; overrides any ``kind`` in the document.
        source: Where the data came from, for error messages.

    Raises:
        SpecLoadError: If the kind is unknown or validation fails.
    """
    if "apiVersion" in raw_data and "spec" in raw_data:
        spec_data = raw_data.get("spec", {})
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {source}")
    else:
        spec_data = {key: value for key, value in raw_data.items() if key != "kind"}

    kind = kind or raw_data.get("kind")
    if not kind:
        raise SpecLoadError(f"No resource kind given in {source}")

    try:
        spec_class = get_spec_class(str(kind))
    except ValueError as e:
        raise SpecLoadError(str(e)) from e

    try:
        return spec_class.model_validate(spec_data)
    except ValidationError as e:
        # Format Pydantic validation errors for readability
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {source}:\n{error_list}") from e


def load_resource_spec(path: Path, kind: str | None = None) -> ResourceSpec:
    """Load and validate a resource document from YAML.

    Args:
        path: YAML file holding the document.
        kind: Resource kind, when the file does not name one.

    Returns:
        Validated document instance.

    Raises:
        SpecLoadError: If the document cannot be loaded or fails validation.
    """
    raw_data = read_yaml_mapping(path)
    spec = parse_resource_spec(raw_data, kind=kind, source=str(path))
    logger.info("Loaded %s '%s' from %s", spec.KIND, spec.name, path)
    return spec
