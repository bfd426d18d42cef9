"""Device registry pairing displays and cameras per checkpoint."""

import logging
from dataclasses import dataclass, field

from checkpoint_sync.domain.devices import Connection, DeviceBinding, DeviceRole

logger = logging.getLogger(__name__)


@dataclass
class DeviceRegistry:
    """In-memory map of (checkpoint, role) to the connection currently bound.

    At most one binding exists per (checkpoint, role); a later registration
    replaces an earlier one. Nothing here awaits, so on a single event loop a
    registration and a lookup for the same checkpoint never interleave.
    """

    _bindings: dict[tuple[str, DeviceRole], DeviceBinding] = field(
        default_factory=dict, init=False
    )

    def register(
        self,
        checkpoint: str,
        role: DeviceRole,
        device_id: str,
        connection: Connection,
    ) -> DeviceBinding | None:
        """Bind a device and return the counterpart binding, if one is present."""
        key = (checkpoint, role)
        previous = self._bindings.get(key)
        if previous is not None and previous.connection is not connection:
            logger.info(
                "Replacing %s binding for checkpoint",
                role,
                extra={
                    "checkpoint": checkpoint,
                    "evicted_device_id": previous.device_id,
                    "device_id": device_id,
                },
            )
        self._bindings[key] = DeviceBinding(
            device_id=device_id,
            role=role,
            checkpoint=checkpoint,
            connection=connection,
        )
        return self._bindings.get((checkpoint, role.counterpart))

    def unregister_by_connection(self, connection: Connection) -> list[DeviceBinding]:
        """Release every binding still held by the connection.

        Bindings already taken over by a newer registration are left alone.
        """
        released = [
            binding
            for binding in self._bindings.values()
            if binding.connection is connection
        ]
        for binding in released:
            del self._bindings[(binding.checkpoint, binding.role)]
        return released

    def lookup(self, checkpoint: str, role: DeviceRole) -> Connection | None:
        binding = self._bindings.get((checkpoint, role))
        return binding.connection if binding else None

    def binding(self, checkpoint: str, role: DeviceRole) -> DeviceBinding | None:
        return self._bindings.get((checkpoint, role))

    def connections(self) -> list[Connection]:
        """Return every distinct bound connection."""
        unique: dict[int, Connection] = {}
        for binding in self._bindings.values():
            unique.setdefault(id(binding.connection), binding.connection)
        return list(unique.values())

    def clear(self) -> None:
        self._bindings.clear()
