"""In-memory session state with best-effort durable bookkeeping."""

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from checkpoint_sync.domain.errors import (
    ImageOutOfSequenceError,
    NoImagesAvailableError,
    SessionAlreadyActiveError,
    SessionAlreadyCompletedError,
    SessionNotFoundError,
)
from checkpoint_sync.domain.images import ImageQueueEntry
from checkpoint_sync.domain.sessions import (
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    AdvanceResult,
    Advanced,
    Completed,
    SessionRecord,
)
from checkpoint_sync.services.images import ImageRepository, new_token

logger = logging.getLogger(__name__)

UNKNOWN_DEVICE = "unknown"
DEFAULT_COMPLETED_RETENTION = 500


class SessionRepository(Protocol):
    """Persistence interface for session bookkeeping."""

    def persist_created(self, session: SessionRecord) -> None:
        """Record a newly created session."""

    def increment_processed(self, session_id: str) -> None:
        """Increase the processed image counter of a session."""

    def mark_completed(self, session_id: str) -> None:
        """Record that a session has completed."""


@dataclass
class _LiveSession:
    session_id: str
    checkpoint_name: str
    device_a_id: str
    images_queue: tuple[ImageQueueEntry, ...]
    created_at: datetime
    current_index: int = 0
    status: str = STATUS_ACTIVE
    completed_at: datetime | None = None

    def snapshot(self) -> SessionRecord:
        return SessionRecord(
            session_id=self.session_id,
            checkpoint_name=self.checkpoint_name,
            device_a_id=self.device_a_id,
            images_queue=self.images_queue,
            current_index=self.current_index,
            status=self.status,
            created_at=self.created_at,
            completed_at=self.completed_at,
        )


@dataclass
class SessionStore:
    """Owns the live cursor of every session.

    The in-memory state is the source of truth while the process runs; the
    session repository only receives bookkeeping writes, and a failed write
    never rolls back a transition.

    Only the newest ``completed_retention`` completed sessions are kept, so
    memory grows with live sessions and checkpoints, not with uptime.
    """

    image_repository: ImageRepository
    session_repository: SessionRepository
    completed_retention: int = DEFAULT_COMPLETED_RETENTION
    _sessions: dict[str, _LiveSession] = field(default_factory=dict, init=False)
    _active_by_checkpoint: dict[str, str] = field(default_factory=dict, init=False)
    _create_locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)
    _capture_locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)
    _completed: deque[str] = field(default_factory=deque, init=False)

    async def create_session(
        self, checkpoint_name: str, requested_count: int, device_id: str | None = None
    ) -> SessionRecord:
        """Start a session over the checkpoint's oldest unprocessed images.

        The same device asking again while its session is active gets that
        session back; any other device is rejected.
        """
        if requested_count < 1:
            raise ValueError("requested_count must be at least 1")
        device = device_id or UNKNOWN_DEVICE
        lock = self._create_locks.setdefault(checkpoint_name, asyncio.Lock())
        async with lock:
            existing = self.active_for(checkpoint_name)
            if existing is not None:
                if device != UNKNOWN_DEVICE and existing.device_a_id == device:
                    logger.info(
                        "Resuming active session",
                        extra={
                            "session_id": existing.session_id,
                            "checkpoint": checkpoint_name,
                        },
                    )
                    return existing
                raise SessionAlreadyActiveError(checkpoint_name, existing.session_id)
            entries = await asyncio.to_thread(
                self.image_repository.find_unprocessed, checkpoint_name, requested_count
            )
            if not entries:
                raise NoImagesAvailableError(checkpoint_name)
            timestamp, suffix = new_token()
            live = _LiveSession(
                session_id=f"session_{timestamp}_{suffix}",
                checkpoint_name=checkpoint_name,
                device_a_id=device,
                images_queue=tuple(
                    sorted(entries[:requested_count], key=lambda e: e.sequence_order)
                ),
                created_at=datetime.now(tz=UTC),
            )
            self._sessions[live.session_id] = live
            self._active_by_checkpoint[checkpoint_name] = live.session_id
        snapshot = live.snapshot()
        logger.info(
            "Session created",
            extra={
                "session_id": live.session_id,
                "checkpoint": checkpoint_name,
                "total_images": snapshot.total_images,
            },
        )
        await self._record(self.session_repository.persist_created, snapshot)
        return snapshot

    async def advance(self, session_id: str, image_id: str | None = None) -> AdvanceResult:
        """Move the cursor past the current image.

        When ``image_id`` is given it must be the current image.
        """
        live = self._require_active(session_id)
        if image_id is not None:
            _check_current(live, image_id)
        live.current_index += 1
        finished = live.current_index >= len(live.images_queue)
        if finished:
            self._complete(live)
        await self._record(self.session_repository.increment_processed, session_id)
        if finished:
            await self._record(self.session_repository.mark_completed, session_id)
            return Completed(total_images=len(live.images_queue))
        return Advanced(new_index=live.current_index)

    def expect_current(self, session_id: str, image_id: str) -> ImageQueueEntry:
        """Return the current entry, failing unless it is ``image_id``."""
        live = self._require_active(session_id)
        return _check_current(live, image_id)

    async def end(self, session_id: str) -> SessionRecord:
        """Complete a session on request; completed sessions are returned as is."""
        async with self.capture_lock(session_id):
            live = self._sessions.get(session_id)
            if live is None:
                raise SessionNotFoundError(session_id)
            if live.status == STATUS_COMPLETED:
                return live.snapshot()
            self._complete(live)
        logger.info(
            "Session ended by display",
            extra={
                "session_id": session_id,
                "processed_images": live.current_index,
                "total_images": len(live.images_queue),
            },
        )
        await self._record(self.session_repository.mark_completed, session_id)
        return live.snapshot()

    def capture_lock(self, session_id: str) -> asyncio.Lock:
        """Lock held while a capture for the session is stored and confirmed.

        ``end`` takes it too, so a session cannot end halfway through a capture.
        """
        if session_id not in self._sessions:
            raise SessionNotFoundError(session_id)
        return self._capture_locks.setdefault(session_id, asyncio.Lock())

    def get(self, session_id: str) -> SessionRecord | None:
        live = self._sessions.get(session_id)
        return live.snapshot() if live else None

    def active_for(self, checkpoint_name: str) -> SessionRecord | None:
        session_id = self._active_by_checkpoint.get(checkpoint_name)
        if session_id is None:
            return None
        return self.get(session_id)

    def _require_active(self, session_id: str) -> _LiveSession:
        live = self._sessions.get(session_id)
        if live is None:
            raise SessionNotFoundError(session_id)
        if live.status == STATUS_COMPLETED:
            raise SessionAlreadyCompletedError(session_id)
        return live

    def _complete(self, live: _LiveSession) -> None:
        live.status = STATUS_COMPLETED
        live.completed_at = datetime.now(tz=UTC)
        if self._active_by_checkpoint.get(live.checkpoint_name) == live.session_id:
            del self._active_by_checkpoint[live.checkpoint_name]
        self._completed.append(live.session_id)
        while len(self._completed) > max(self.completed_retention, 1):
            evicted = self._completed.popleft()
            self._sessions.pop(evicted, None)
            self._capture_locks.pop(evicted, None)

    async def _record(self, write: Callable[..., None], *args: object) -> None:
        try:
            await asyncio.to_thread(write, *args)
        except Exception:
            logger.exception(
                "Session bookkeeping write failed",
                extra={"operation": getattr(write, "__name__", repr(write))},
            )


def _check_current(live: _LiveSession, image_id: str) -> ImageQueueEntry:
    expected = (
        live.images_queue[live.current_index]
        if live.current_index < len(live.images_queue)
        else None
    )
    if expected is None or expected.image_id != image_id:
        raise ImageOutOfSequenceError(
            live.session_id, image_id, expected.image_id if expected else None
        )
    return expected
