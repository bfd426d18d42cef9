"""Pydantic schemas for real-time device events."""

from datetime import UTC, datetime
from typing import Annotated, ClassVar

from pydantic import BaseModel, ConfigDict, Field

CheckpointName = Annotated[str, Field(min_length=1, max_length=255)]


class InboundMessage(BaseModel):
    """Envelope for every message a device sends."""

    event: str = Field(min_length=1)
    data: dict[str, object] = Field(default_factory=dict)


class InboundEvent(BaseModel):
    """Base class for events sent by devices."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    event: ClassVar[str]


class RegisterDisplay(InboundEvent):
    event: ClassVar[str] = "register_display"

    device_id: str = Field(min_length=1)
    checkpoint_name: CheckpointName


class RegisterCamera(InboundEvent):
    event: ClassVar[str] = "register_camera"

    device_id: str = Field(min_length=1)
    checkpoint_name: CheckpointName


class DisplayNextImage(InboundEvent):
    """Display asks for the image at its cursor to be shown to the camera."""

    event: ClassVar[str] = "display_next_image"

    session_id: str = Field(min_length=1)
    current_image_id: str = Field(min_length=1)
    checkpoint_name: CheckpointName
    image_url: str | None = None
    target_filename: str | None = None


class SessionComplete(InboundEvent):
    event: ClassVar[str] = "session_complete"

    session_id: str = Field(min_length=1)
    checkpoint_name: CheckpointName


INBOUND_EVENTS: dict[str, type[InboundEvent]] = {
    model.event: model
    for model in (RegisterDisplay, RegisterCamera, DisplayNextImage, SessionComplete)
}


class OutboundEvent(BaseModel):
    """Base class for events sent to devices."""

    model_config = ConfigDict(frozen=True)

    event: ClassVar[str]

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(mode="json")


class Registered(OutboundEvent):
    event: ClassVar[str] = "registered"

    device_id: str
    checkpoint_name: str
    role: str


class CameraReady(OutboundEvent):
    event: ClassVar[str] = "camera_ready"

    device_id: str
    checkpoint_name: str
    message: str = "Camera device connected and ready"


class DisplayConnected(OutboundEvent):
    event: ClassVar[str] = "display_connected"

    device_id: str
    checkpoint_name: str
    message: str = "Display device connected"


class DisplayImage(OutboundEvent):
    event: ClassVar[str] = "display_image"

    image_id: str
    checkpoint_name: str
    image_url: str
    session_id: str
    target_filename: str


class CaptureConfirmed(OutboundEvent):
    event: ClassVar[str] = "capture_confirmed"

    image_id: str
    checkpoint_name: str
    spoofed_file_path: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))


class SessionEnded(OutboundEvent):
    event: ClassVar[str] = "session_ended"

    checkpoint_name: str
    session_id: str
    message: str = "Session completed"


class CameraDisconnected(OutboundEvent):
    event: ClassVar[str] = "camera_disconnected"

    checkpoint_name: str


class DisplayDisconnected(OutboundEvent):
    event: ClassVar[str] = "display_disconnected"

    checkpoint_name: str


class CaptureTimeout(OutboundEvent):
    event: ClassVar[str] = "capture_timeout"

    checkpoint_name: str
    session_id: str
    image_id: str
    message: str = "Camera did not confirm the capture in time"


class SessionError(OutboundEvent):
    event: ClassVar[str] = "session_error"

    checkpoint_name: str
    session_id: str | None = None
    message: str


class ServerShutdown(OutboundEvent):
    event: ClassVar[str] = "server_shutdown"

    message: str = "Server is shutting down"
