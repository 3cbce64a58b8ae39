"""Process wiring for the provisioner.

Sets up structured logging and assembles a reconciler for a resource kind:
managed identity credential, SDK-backed client, adapter and poller.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from .adapters import build_adapter
from .clients import build_client
from .config import Config
from .poller import OperationPoller
from .reconciler import ResourceReconciler, StateWriter
from .security import get_credential

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure structured logging with JSON output on stderr.

    Stdout is left to command output.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_reconciler(
    kind: str,
    config: Config,
    state_writer: StateWriter | None = None,
) -> ResourceReconciler:
    """Assemble a reconciler backed by the Azure SDK.

    Raises:
        ValueError: If the kind is not supported.
        SecretlessViolationError: If credential secrets are in the environment.
    """
    credential = get_credential(config.client_id)
    client = build_client(kind, config, credential)
    adapter = build_adapter(kind, config, client)
    return ResourceReconciler(
        adapter=adapter,
        config=config,
        poller=OperationPoller(),
        state_writer=state_writer,
    )
