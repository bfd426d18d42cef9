"""Filesystem storage for original and spoofed images."""

import re
from dataclasses import dataclass
from pathlib import Path

from checkpoint_sync.services.images import FileStore

ORIGINAL_DIR = "original"
SPOOFED_DIR = "spoofed"

_SAFE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 ._-]*$")


@dataclass
class LocalFileStore(FileStore):
    """Writes images below ``root`` as ``<kind>/<checkpoint>/<filename>``."""

    root: Path

    def save_original(self, checkpoint_name: str, filename: str, content: bytes) -> str:
        """Store an original image and return its relative path."""
        return self._write(ORIGINAL_DIR, checkpoint_name, filename, content)

    def save_spoof(self, checkpoint_name: str, filename: str, content: bytes) -> str:
        """Store a spoof image and return its relative path."""
        return self._write(SPOOFED_DIR, checkpoint_name, filename, content)

    def _write(self, kind: str, checkpoint_name: str, filename: str, content: bytes) -> str:
        _require_safe(checkpoint_name, "checkpoint name")
        _require_safe(filename, "filename")
        directory = self.root / kind / checkpoint_name
        directory.mkdir(parents=True, exist_ok=True)
        (directory / filename).write_bytes(content)
        return f"{kind}/{checkpoint_name}/{filename}"


def _require_safe(value: str, label: str) -> None:
    if not _SAFE_NAME.match(value) or ".." in value:
        raise ValueError(f"Invalid {label}: {value!r}")
