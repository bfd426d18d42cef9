"""Reference image uploads and spoof capture bookkeeping."""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import PurePosixPath
from typing import Protocol
from uuid import uuid4

from checkpoint_sync.domain.errors import (
    ImageAlreadyProcessedError,
    ImageNotFoundError,
)
from checkpoint_sync.domain.images import (
    CheckpointSummary,
    ImageQueueEntry,
    ImageRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".jpg"


class ImageRepository(Protocol):
    """Persistence interface for reference image metadata."""

    def find_unprocessed(self, checkpoint_name: str, limit: int) -> list[ImageQueueEntry]:
        """Return unprocessed images ordered by ascending sequence order."""

    def get_image(self, image_id: str, checkpoint_name: str) -> ImageRecord | None:
        """Return an image of a checkpoint, if present."""

    def create_image(self, record: ImageRecord) -> None:
        """Persist a newly uploaded image."""

    def mark_processed(self, image_id: str, spoofed_file_path: str) -> None:
        """Mark an image processed; raise if missing or already processed."""

    def next_sequence_order(self, checkpoint_name: str) -> int:
        """Return the sequence order for the next upload to a checkpoint."""

    def list_checkpoints(self) -> list[CheckpointSummary]:
        """Return image counts per checkpoint, ordered by name."""


class FileStore(Protocol):
    """Storage interface for image files."""

    def save_original(self, checkpoint_name: str, filename: str, content: bytes) -> str:
        """Store an original image and return its relative path."""

    def save_spoof(self, checkpoint_name: str, filename: str, content: bytes) -> str:
        """Store a spoof image and return its relative path."""


@dataclass
class ImageService:
    """Stores uploaded images and keeps their metadata in sync."""

    repository: ImageRepository
    file_store: FileStore
    _upload_locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)
    _spoof_locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)

    async def upload_original(
        self, checkpoint_name: str, original_name: str, content: bytes
    ) -> ImageRecord:
        """Store an original image at the end of the checkpoint's sequence."""
        extension = PurePosixPath(original_name).suffix.lower() or DEFAULT_EXTENSION
        image_id, filename = _generate_names(extension)
        file_path = await asyncio.to_thread(
            self.file_store.save_original, checkpoint_name, filename, content
        )
        lock = self._upload_locks.setdefault(checkpoint_name, asyncio.Lock())
        async with lock:
            sequence_order = await asyncio.to_thread(
                self.repository.next_sequence_order, checkpoint_name
            )
            record = ImageRecord(
                image_id=image_id,
                checkpoint_name=checkpoint_name,
                original_filename=filename,
                original_file_path=file_path,
                sequence_order=sequence_order,
                file_extension=extension,
                uploaded_at=datetime.now(tz=UTC),
            )
            await asyncio.to_thread(self.repository.create_image, record)
        logger.info(
            "Stored original image",
            extra={
                "image_id": image_id,
                "checkpoint": checkpoint_name,
                "sequence_order": sequence_order,
            },
        )
        return record

    async def record_spoof(
        self, image_id: str, checkpoint_name: str, content: bytes
    ) -> ImageRecord:
        """Store a spoof under the original's filename and mark it processed.

        Concurrent calls for one image are serialised, so a rejected duplicate
        never overwrites the file of the accepted capture.
        """
        lock = self._spoof_locks.setdefault(image_id, asyncio.Lock())
        async with lock:
            image = await asyncio.to_thread(
                self.repository.get_image, image_id, checkpoint_name
            )
            if image is None:
                raise ImageNotFoundError(image_id)
            if image.is_processed:
                raise ImageAlreadyProcessedError(image_id)
            spoofed_path = await asyncio.to_thread(
                self.file_store.save_spoof,
                checkpoint_name,
                image.original_filename,
                content,
            )
            await asyncio.to_thread(
                self.repository.mark_processed, image_id, spoofed_path
            )
            # Later callers fail the is_processed check before writing anything.
            self._spoof_locks.pop(image_id, None)
        return replace(
            image,
            is_processed=True,
            spoofed_file_path=spoofed_path,
            processed_at=datetime.now(tz=UTC),
        )

    async def list_checkpoints(self) -> list[CheckpointSummary]:
        return await asyncio.to_thread(self.repository.list_checkpoints)


def new_token() -> tuple[int, str]:
    """Return a millisecond timestamp and a short random suffix."""
    return int(time.time() * 1000), uuid4().hex[:8]


def _generate_names(extension: str) -> tuple[str, str]:
    timestamp, suffix = new_token()
    return f"img_{timestamp}_{suffix}", f"{timestamp}-{suffix}{extension}"
