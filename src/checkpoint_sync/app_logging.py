"""Logging configuration helpers."""

import logging

CONTEXT_FIELDS = (
    "checkpoint",
    "session_id",
    "device_id",
    "image_id",
    "connection_id",
)


class ContextFormatter(logging.Formatter):
    """Appends the correlation fields passed through ``extra=`` to each line."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(
            f"{name}={getattr(record, name)}"
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        )
        return f"{line} [{context}]" if context else line


def configure_logging(level: str = "INFO") -> None:
    """Configure application logging with a single stream handler."""
    logger = logging.getLogger("checkpoint_sync")
    logger.setLevel(level.upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        ContextFormatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
