"""Domain models for reference images and their spoofs."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath

UPLOADS_URL_PREFIX = "/uploads"


def image_url_for(file_path: str) -> str:
    """Return the public URL for a stored file path."""
    return f"{UPLOADS_URL_PREFIX}/{file_path}"


@dataclass(frozen=True)
class ImageQueueEntry:
    """One reference image in a session queue."""

    image_id: str
    sequence_order: int
    original_file_path: str

    @property
    def image_url(self) -> str:
        return image_url_for(self.original_file_path)

    @property
    def target_filename(self) -> str:
        """Filename the spoof must be stored under."""
        return PurePosixPath(self.original_file_path).name


@dataclass(frozen=True)
class ImageRecord:
    """Represents a persisted reference image row."""

    image_id: str
    checkpoint_name: str
    original_filename: str
    original_file_path: str
    sequence_order: int
    file_extension: str
    is_processed: bool = False
    spoofed_file_path: str | None = None
    uploaded_at: datetime | None = None
    processed_at: datetime | None = None

    @property
    def image_url(self) -> str:
        return image_url_for(self.original_file_path)

    def to_queue_entry(self) -> ImageQueueEntry:
        return ImageQueueEntry(
            image_id=self.image_id,
            sequence_order=self.sequence_order,
            original_file_path=self.original_file_path,
        )


@dataclass(frozen=True)
class CheckpointSummary:
    """Image counts for a checkpoint."""

    name: str
    total_images: int
    processed_images: int
    pending_images: int
