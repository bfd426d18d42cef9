"""Domain models for display sessions."""

from dataclasses import dataclass
from datetime import datetime

from checkpoint_sync.domain.images import ImageQueueEntry

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"


@dataclass(frozen=True)
class SessionRecord:
    """Snapshot of a display session."""

    session_id: str
    checkpoint_name: str
    device_a_id: str
    images_queue: tuple[ImageQueueEntry, ...]
    current_index: int
    status: str
    created_at: datetime
    completed_at: datetime | None = None

    @property
    def total_images(self) -> int:
        return len(self.images_queue)

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def current_image(self) -> ImageQueueEntry | None:
        """Return the image awaiting capture, if any remain."""
        if self.current_index < len(self.images_queue):
            return self.images_queue[self.current_index]
        return None


@dataclass(frozen=True)
class Advanced:
    """The cursor moved forward and images remain."""

    new_index: int


@dataclass(frozen=True)
class Completed:
    """The last image was captured and the session is completed."""

    total_images: int


AdvanceResult = Advanced | Completed
