"""Event router keeping a display and a camera in lockstep per checkpoint."""

import asyncio
import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from checkpoint_sync.domain.devices import Connection, DeviceBinding, DeviceRole
from checkpoint_sync.domain.errors import SessionNotFoundError
from checkpoint_sync.domain.events import (
    INBOUND_EVENTS,
    CameraDisconnected,
    CameraReady,
    CaptureConfirmed,
    CaptureTimeout,
    DisplayConnected,
    DisplayDisconnected,
    DisplayImage,
    DisplayNextImage,
    InboundEvent,
    InboundMessage,
    OutboundEvent,
    RegisterCamera,
    RegisterDisplay,
    Registered,
    ServerShutdown,
    SessionComplete,
    SessionEnded,
    SessionError,
)
from checkpoint_sync.domain.images import ImageQueueEntry
from checkpoint_sync.domain.sessions import AdvanceResult, Advanced, SessionRecord
from checkpoint_sync.services.registry import DeviceRegistry
from checkpoint_sync.services.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class _PendingCapture:
    session_id: str
    entry: ImageQueueEntry
    retries: int
    task: asyncio.Task[None]


@dataclass
class Coordinator:
    """Routes device events between the two sides of each checkpoint.

    All state is keyed by checkpoint name, so a bad event for one checkpoint
    never touches another checkpoint's session.
    """

    registry: DeviceRegistry
    session_store: SessionStore
    capture_timeout_seconds: float = 60.0
    capture_max_retries: int = 1
    server_push: bool = False
    _pending: dict[str, _PendingCapture] = field(default_factory=dict, init=False)

    async def dispatch(self, connection: Connection, raw: str) -> None:
        """Validate and handle one raw message; failures are logged and dropped."""
        try:
            message = InboundMessage.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Dropping malformed message",
                extra={"connection_id": connection.connection_id, "errors": exc.errors()},
            )
            return
        model = INBOUND_EVENTS.get(message.event)
        if model is None:
            logger.warning(
                "Dropping unknown event %s",
                message.event,
                extra={"connection_id": connection.connection_id},
            )
            return
        try:
            event = model.model_validate(message.data)
        except ValidationError as exc:
            logger.warning(
                "Dropping invalid %s payload",
                message.event,
                extra={"connection_id": connection.connection_id, "errors": exc.errors()},
            )
            return
        try:
            await self._handle(connection, event)
        except Exception:
            logger.exception(
                "Handler for %s failed",
                message.event,
                extra={"connection_id": connection.connection_id},
            )

    async def handle_disconnect(self, connection: Connection) -> None:
        """Release the connection's bindings and tell each survivor."""
        for binding in self.registry.unregister_by_connection(connection):
            logger.info(
                "%s disconnected",
                binding.role,
                extra={"checkpoint": binding.checkpoint, "device_id": binding.device_id},
            )
            if binding.role is DeviceRole.CAMERA:
                self._cancel_capture_timer(binding.checkpoint)
                await self._send_to(
                    binding.checkpoint,
                    DeviceRole.DISPLAY,
                    CameraDisconnected(checkpoint_name=binding.checkpoint),
                )
            else:
                await self._send_to(
                    binding.checkpoint,
                    DeviceRole.CAMERA,
                    DisplayDisconnected(checkpoint_name=binding.checkpoint),
                )

    async def confirm_capture(
        self,
        checkpoint_name: str,
        session_id: str,
        image_id: str,
        spoofed_file_path: str,
    ) -> AdvanceResult:
        """Advance the session past a captured image and notify the display."""
        result = await self.session_store.advance(session_id, image_id)
        self._cancel_capture_timer(checkpoint_name)
        await self._send_to(
            checkpoint_name,
            DeviceRole.DISPLAY,
            CaptureConfirmed(
                image_id=image_id,
                checkpoint_name=checkpoint_name,
                spoofed_file_path=spoofed_file_path,
            ),
        )
        if self.server_push and isinstance(result, Advanced):
            session = self.session_store.get(session_id)
            if session is not None:
                await self._push_current(session)
        return result

    async def shutdown(self) -> None:
        """Cancel timers and tell every connected device the server is going away."""
        for checkpoint in list(self._pending):
            self._cancel_capture_timer(checkpoint)
        notice = ServerShutdown()
        for connection in self.registry.connections():
            await _send(connection, notice)
        self.registry.clear()
        logger.info("Coordinator shut down")

    async def _handle(self, connection: Connection, event: InboundEvent) -> None:
        if isinstance(event, RegisterDisplay):
            await self._on_register(connection, DeviceRole.DISPLAY, event)
        elif isinstance(event, RegisterCamera):
            await self._on_register(connection, DeviceRole.CAMERA, event)
        elif isinstance(event, DisplayNextImage):
            await self._on_display_next_image(connection, event)
        elif isinstance(event, SessionComplete):
            await self._on_session_complete(connection, event)

    async def _on_register(
        self,
        connection: Connection,
        role: DeviceRole,
        event: RegisterDisplay | RegisterCamera,
    ) -> None:
        checkpoint = event.checkpoint_name
        counterpart = self.registry.register(checkpoint, role, event.device_id, connection)
        logger.info(
            "%s registered",
            role,
            extra={"checkpoint": checkpoint, "device_id": event.device_id},
        )
        await _send(
            connection,
            Registered(
                device_id=event.device_id, checkpoint_name=checkpoint, role=role.value
            ),
        )
        if counterpart is None:
            return
        newcomer = DeviceBinding(
            device_id=event.device_id,
            role=role,
            checkpoint=checkpoint,
            connection=connection,
        )
        await _send(counterpart.connection, _ready_notice(newcomer))
        await _send(connection, _ready_notice(counterpart))
        if self.server_push and role is DeviceRole.CAMERA:
            session = self.session_store.active_for(checkpoint)
            if session is not None:
                await self._push_current(session)

    async def _on_display_next_image(
        self, connection: Connection, event: DisplayNextImage
    ) -> None:
        checkpoint = event.checkpoint_name
        session = self.session_store.get(event.session_id)
        if session is None or session.checkpoint_name != checkpoint:
            await self._reject(connection, checkpoint, event.session_id, "Unknown session")
            return
        entry = session.current_image
        if not session.is_active or entry is None:
            await self._reject(
                connection, checkpoint, event.session_id, "Session already completed"
            )
            return
        if entry.image_id != event.current_image_id:
            logger.warning(
                "Display cursor disagrees with session; sending current image",
                extra={
                    "session_id": session.session_id,
                    "requested_image_id": event.current_image_id,
                    "current_image_id": entry.image_id,
                },
            )
        await self._forward_image(checkpoint, session.session_id, entry, retries=0)

    async def _on_session_complete(
        self, connection: Connection, event: SessionComplete
    ) -> None:
        known = self.session_store.get(event.session_id)
        if known is None or known.checkpoint_name != event.checkpoint_name:
            await self._reject(
                connection, event.checkpoint_name, event.session_id, "Unknown session"
            )
            return
        checkpoint = known.checkpoint_name
        try:
            session = await self.session_store.end(event.session_id)
        except SessionNotFoundError as exc:
            await self._reject(connection, checkpoint, event.session_id, str(exc))
            return
        self._cancel_capture_timer(checkpoint)
        logger.info(
            "Session complete",
            extra={
                "session_id": session.session_id,
                "checkpoint": checkpoint,
                "processed_images": session.current_index,
            },
        )
        await self._send_to(
            checkpoint,
            DeviceRole.CAMERA,
            SessionEnded(checkpoint_name=checkpoint, session_id=session.session_id),
        )

    async def _push_current(self, session: SessionRecord) -> None:
        entry = session.current_image
        if session.is_active and entry is not None:
            await self._forward_image(
                session.checkpoint_name, session.session_id, entry, retries=0
            )

    async def _forward_image(
        self, checkpoint: str, session_id: str, entry: ImageQueueEntry, retries: int
    ) -> None:
        camera = self.registry.lookup(checkpoint, DeviceRole.CAMERA)
        if camera is None:
            logger.info(
                "No camera bound; holding image",
                extra={"checkpoint": checkpoint, "image_id": entry.image_id},
            )
            return
        await _send(
            camera,
            DisplayImage(
                image_id=entry.image_id,
                checkpoint_name=checkpoint,
                image_url=entry.image_url,
                session_id=session_id,
                target_filename=entry.target_filename,
            ),
        )
        self._arm_capture_timer(checkpoint, session_id, entry, retries)

    def _arm_capture_timer(
        self, checkpoint: str, session_id: str, entry: ImageQueueEntry, retries: int
    ) -> None:
        self._cancel_capture_timer(checkpoint)
        if self.capture_timeout_seconds <= 0:
            return
        task = asyncio.create_task(
            self._capture_deadline(checkpoint),
            name=f"capture-timeout-{checkpoint}",
        )
        self._pending[checkpoint] = _PendingCapture(
            session_id=session_id, entry=entry, retries=retries, task=task
        )

    def _cancel_capture_timer(self, checkpoint: str) -> None:
        pending = self._pending.pop(checkpoint, None)
        if pending is not None and pending.task is not asyncio.current_task():
            pending.task.cancel()

    async def _capture_deadline(self, checkpoint: str) -> None:
        await asyncio.sleep(self.capture_timeout_seconds)
        pending = self._pending.pop(checkpoint, None)
        if pending is None:
            return
        session = self.session_store.get(pending.session_id)
        current = session.current_image if session and session.is_active else None
        if current is None or current.image_id != pending.entry.image_id:
            return
        if pending.retries < self.capture_max_retries:
            logger.warning(
                "Capture timed out; re-sending image",
                extra={
                    "checkpoint": checkpoint,
                    "image_id": current.image_id,
                    "attempt": pending.retries + 1,
                },
            )
            await self._forward_image(
                checkpoint, pending.session_id, current, retries=pending.retries + 1
            )
            return
        logger.warning(
            "Capture timed out",
            extra={"checkpoint": checkpoint, "image_id": current.image_id},
        )
        await self._send_to(
            checkpoint,
            DeviceRole.DISPLAY,
            CaptureTimeout(
                checkpoint_name=checkpoint,
                session_id=pending.session_id,
                image_id=current.image_id,
            ),
        )

    async def _send_to(self, checkpoint: str, role: DeviceRole, event: OutboundEvent) -> None:
        connection = self.registry.lookup(checkpoint, role)
        if connection is not None:
            await _send(connection, event)

    async def _reject(
        self, connection: Connection, checkpoint: str, session_id: str, message: str
    ) -> None:
        logger.warning(
            "Rejecting display request: %s",
            message,
            extra={"checkpoint": checkpoint, "session_id": session_id},
        )
        await _send(
            connection,
            SessionError(checkpoint_name=checkpoint, session_id=session_id, message=message),
        )


def _ready_notice(binding: DeviceBinding) -> OutboundEvent:
    """Notice telling a device that ``binding`` is present at its checkpoint."""
    if binding.role is DeviceRole.CAMERA:
        return CameraReady(device_id=binding.device_id, checkpoint_name=binding.checkpoint)
    return DisplayConnected(device_id=binding.device_id, checkpoint_name=binding.checkpoint)


async def _send(connection: Connection, event: OutboundEvent) -> None:
    await connection.send(event.event, event.to_payload())

