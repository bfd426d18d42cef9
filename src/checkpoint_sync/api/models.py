"""Pydantic models for the HTTP API."""

from datetime import datetime

from pydantic import BaseModel, Field

from checkpoint_sync.domain.images import CheckpointSummary, ImageRecord
from checkpoint_sync.domain.sessions import SessionRecord


class StartSessionRequest(BaseModel):
    """Display request to start a session."""

    checkpoint_name: str = Field(min_length=1, max_length=255)
    image_count: int = Field(ge=1)
    device_id: str | None = None


class QueuedImage(BaseModel):
    image_id: str
    sequence_order: int
    original_file_path: str
    image_url: str
    target_filename: str


class CurrentImage(BaseModel):
    image_id: str
    checkpoint_name: str
    image_url: str
    sequence_order: int


class SessionResponse(BaseModel):
    """Live view of a session."""

    success: bool = True
    session_id: str
    checkpoint_name: str
    device_a_id: str
    status: str
    current_index: int
    total_images: int
    images_queue: list[QueuedImage]
    current_image: CurrentImage | None = None

    @classmethod
    def from_record(cls, session: SessionRecord) -> "SessionResponse":
        current = session.current_image
        return cls(
            session_id=session.session_id,
            checkpoint_name=session.checkpoint_name,
            device_a_id=session.device_a_id,
            status=session.status,
            current_index=session.current_index,
            total_images=session.total_images,
            images_queue=[
                QueuedImage(
                    image_id=entry.image_id,
                    sequence_order=entry.sequence_order,
                    original_file_path=entry.original_file_path,
                    image_url=entry.image_url,
                    target_filename=entry.target_filename,
                )
                for entry in session.images_queue
            ],
            current_image=(
                CurrentImage(
                    image_id=current.image_id,
                    checkpoint_name=session.checkpoint_name,
                    image_url=current.image_url,
                    sequence_order=current.sequence_order,
                )
                if current and session.is_active
                else None
            ),
        )


class UploadResponse(BaseModel):
    """Result of storing an original image."""

    success: bool = True
    image_id: str
    checkpoint_name: str
    original_file_path: str
    original_filename: str
    image_url: str
    sequence_order: int

    @classmethod
    def from_record(cls, image: ImageRecord) -> "UploadResponse":
        return cls(
            image_id=image.image_id,
            checkpoint_name=image.checkpoint_name,
            original_file_path=image.original_file_path,
            original_filename=image.original_filename,
            image_url=image.image_url,
            sequence_order=image.sequence_order,
        )


class SpoofUploadResponse(BaseModel):
    """Result of storing a spoof image."""

    success: bool = True
    image_id: str
    checkpoint_name: str
    session_id: str
    original_file_path: str
    spoofed_file_path: str
    processed_at: datetime | None
    session_completed: bool


class CheckpointInfo(BaseModel):
    name: str
    total_images: int
    processed_images: int
    pending_images: int


class CheckpointsResponse(BaseModel):
    checkpoints: list[CheckpointInfo]

    @classmethod
    def from_summaries(cls, summaries: list[CheckpointSummary]) -> "CheckpointsResponse":
        return cls(
            checkpoints=[
                CheckpointInfo(
                    name=summary.name,
                    total_images=summary.total_images,
                    processed_images=summary.processed_images,
                    pending_images=summary.pending_images,
                )
                for summary in summaries
            ]
        )
