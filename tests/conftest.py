"""Shared test fixtures."""

import json
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

import pytest

from checkpoint_sync.config import Settings
from checkpoint_sync.containers import AppContainer, wire_services
from checkpoint_sync.domain.errors import (
    ImageAlreadyProcessedError,
    ImageNotFoundError,
)
from checkpoint_sync.domain.images import (
    CheckpointSummary,
    ImageQueueEntry,
    ImageRecord,
)
from checkpoint_sync.domain.sessions import SessionRecord
from checkpoint_sync.services.coordinator import Coordinator
from checkpoint_sync.services.images import ImageRepository
from checkpoint_sync.services.registry import DeviceRegistry
from checkpoint_sync.services.session_store import SessionRepository, SessionStore


@dataclass
class InMemoryImageRepository(ImageRepository):
    """In-memory image repository for tests."""

    images: dict[str, ImageRecord] = field(default_factory=dict)

    def seed(self, checkpoint_name: str, count: int) -> list[ImageRecord]:
        """Add ``count`` unprocessed images at the end of a checkpoint."""
        records = []
        for _ in range(count):
            order = self.next_sequence_order(checkpoint_name)
            filename = f"{order:04d}-{uuid4().hex[:8]}.jpg"
            record = ImageRecord(
                image_id=f"img_{checkpoint_name}_{order}",
                checkpoint_name=checkpoint_name,
                original_filename=filename,
                original_file_path=f"original/{checkpoint_name}/{filename}",
                sequence_order=order,
                file_extension=".jpg",
            )
            self.create_image(record)
            records.append(record)
        return records

    def find_unprocessed(self, checkpoint_name: str, limit: int) -> list[ImageQueueEntry]:
        pending = sorted(
            (
                image
                for image in self.images.values()
                if image.checkpoint_name == checkpoint_name and not image.is_processed
            ),
            key=lambda image: image.sequence_order,
        )
        return [image.to_queue_entry() for image in pending[:limit]]

    def get_image(self, image_id: str, checkpoint_name: str) -> ImageRecord | None:
        image = self.images.get(image_id)
        if image is None or image.checkpoint_name != checkpoint_name:
            return None
        return image

    def create_image(self, record: ImageRecord) -> None:
        self.images[record.image_id] = record

    def mark_processed(self, image_id: str, spoofed_file_path: str) -> None:
        image = self.images.get(image_id)
        if image is None:
            raise ImageNotFoundError(image_id)
        if image.is_processed:
            raise ImageAlreadyProcessedError(image_id)
        self.images[image_id] = replace(
            image,
            is_processed=True,
            spoofed_file_path=spoofed_file_path,
            processed_at=datetime.now(tz=UTC),
        )

    def next_sequence_order(self, checkpoint_name: str) -> int:
        orders = [
            image.sequence_order
            for image in self.images.values()
            if image.checkpoint_name == checkpoint_name
        ]
        return max(orders, default=0) + 1

    def list_checkpoints(self) -> list[CheckpointSummary]:
        names = sorted({image.checkpoint_name for image in self.images.values()})
        summaries = []
        for name in names:
            images = [i for i in self.images.values() if i.checkpoint_name == name]
            processed = sum(1 for i in images if i.is_processed)
            summaries.append(
                CheckpointSummary(
                    name=name,
                    total_images=len(images),
                    processed_images=processed,
                    pending_images=len(images) - processed,
                )
            )
        return summaries


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session bookkeeping for tests."""

    created: dict[str, SessionRecord] = field(default_factory=dict)
    processed: dict[str, int] = field(default_factory=dict)
    completed: list[str] = field(default_factory=list)

    def persist_created(self, session: SessionRecord) -> None:
        self.created[session.session_id] = session
        self.processed[session.session_id] = 0

    def increment_processed(self, session_id: str) -> None:
        self.processed[session_id] = self.processed.get(session_id, 0) + 1

    def mark_completed(self, session_id: str) -> None:
        self.completed.append(session_id)


class FailingSessionRepository(SessionRepository):
    """Session repository whose every write fails."""

    def persist_created(self, session: SessionRecord) -> None:
        raise RuntimeError("database unavailable")

    def increment_processed(self, session_id: str) -> None:
        raise RuntimeError("database unavailable")

    def mark_completed(self, session_id: str) -> None:
        raise RuntimeError("database unavailable")


@dataclass(eq=False)
class FakeConnection:
    """Connection that records every event sent to it."""

    connection_id: str = field(default_factory=lambda: uuid4().hex)
    sent: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    async def send(self, event: str, payload: dict[str, object]) -> None:
        self.sent.append((event, payload))

    def events(self) -> list[str]:
        return [event for event, _ in self.sent]

    def payloads(self, event: str) -> list[dict[str, object]]:
        return [payload for name, payload in self.sent if name == event]


def message(event: str, **data: object) -> str:
    """Encode a device message envelope."""
    return json.dumps({"event": event, "data": data})


def build_coordinator(
    image_repository: InMemoryImageRepository,
    session_repository: SessionRepository | None = None,
    **options: object,
) -> Coordinator:
    """Create a coordinator with a fresh registry and session store."""
    store = SessionStore(
        image_repository=image_repository,
        session_repository=session_repository or InMemorySessionRepository(),
    )
    options.setdefault("capture_timeout_seconds", 0)
    return Coordinator(
        registry=DeviceRegistry(),
        session_store=store,
        **options,  # type: ignore[arg-type]
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        uploads_dir=str(tmp_path / "uploads"),
        capture_timeout_seconds=0,
    )


@pytest.fixture
def image_repository() -> InMemoryImageRepository:
    return InMemoryImageRepository()


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def container(
    settings: Settings,
    image_repository: InMemoryImageRepository,
    session_repository: InMemorySessionRepository,
) -> AppContainer:
    return wire_services(
        settings=settings,
        image_repository=image_repository,
        session_repository=session_repository,
        uploads_root=Path(settings.uploads_dir),
    )
