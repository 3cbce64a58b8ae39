"""Local persistence of reconciled documents.

Each resource is stored as one YAML file under the state directory:

    <state_dir>/<kind>/<resource_group, lower-cased>/<name>.yaml

Files hold access keys, so they are written with mode 0600.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from .config import MAX_STATE_FILE_SIZE_BYTES
from .models import ResourceSpec
from .spec_loader import SpecLoadError, parse_resource_spec, read_yaml_mapping

logger = logging.getLogger(__name__)

STATE_FILE_MODE = 0o600


class StateStore:
    """YAML-file state store keyed by kind, resource group and name."""

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    def path_for(self, kind: str, resource_group: str, name: str) -> Path:
        # Resource group names are case-insensitive in ARM
        return self._state_dir / kind / resource_group.lower() / f"{name}.yaml"

    def save(self, document: ResourceSpec) -> Path:
        """Write a document, replacing any previous version atomically."""
        path = self.path_for(document.KIND, document.resource_group_name, document.name)
        path.parent.mkdir(parents=True, exist_ok=True)

        content = yaml.safe_dump(
            {"kind": document.KIND, **document.model_dump(mode="json", by_alias=True)},
            sort_keys=False,
        )

        tmp_path = path.with_suffix(".yaml.tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, STATE_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)

        logger.debug("State saved", extra={"path": str(path), "resource_id": document.id})
        return path

    def load(self, kind: str, resource_group: str, name: str) -> ResourceSpec | None:
        """Load a stored document, or None when nothing is stored.

        Raises:
            SpecLoadError: If the stored file is corrupt.
        """
        path = self.path_for(kind, resource_group, name)
        if not path.exists():
            return None
        raw_data = read_yaml_mapping(path, max_size_bytes=MAX_STATE_FILE_SIZE_BYTES)
        document = parse_resource_spec(raw_data, source=str(path))
        if document.KIND != kind:
            raise SpecLoadError(f"State file {path} holds a {document.KIND}, expected {kind}")
        return document

    def remove(self, kind: str, resource_group: str, name: str) -> bool:
        """Delete a stored document; returns whether one existed."""
        path = self.path_for(kind, resource_group, name)
        if not path.exists():
            return False
        path.unlink()
        logger.debug("State removed", extra={"path": str(path)})
        return True
