"""Domain models for paired devices."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol


class DeviceRole(StrEnum):
    """Role a device plays at a checkpoint."""

    DISPLAY = "display"
    CAMERA = "camera"

    @property
    def counterpart(self) -> "DeviceRole":
        """Return the role this device is paired with."""
        if self is DeviceRole.DISPLAY:
            return DeviceRole.CAMERA
        return DeviceRole.DISPLAY


class Connection(Protocol):
    """Duplex channel to a single connected device."""

    connection_id: str

    async def send(self, event: str, payload: dict[str, object]) -> None:
        """Send a named event with a JSON-compatible payload."""


@dataclass(frozen=True)
class DeviceBinding:
    """A device registered under a checkpoint in a given role."""

    device_id: str
    role: DeviceRole
    checkpoint: str
    connection: Connection
