"""Supabase-backed session bookkeeping."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from checkpoint_sync.domain.sessions import STATUS_COMPLETED, SessionRecord
from checkpoint_sync.services.session_store import SessionRepository

_TABLE = "sessions"


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for durable session records."""

    client: Client

    def persist_created(self, session: SessionRecord) -> None:
        """Insert a session row."""
        response = (
            self.client.table(_TABLE)
            .insert(
                {
                    "session_id": session.session_id,
                    "checkpoint_name": session.checkpoint_name,
                    "device_a_id": session.device_a_id,
                    "total_images": session.total_images,
                    "processed_images": 0,
                    "status": session.status,
                    "created_at": session.created_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create session")

    def increment_processed(self, session_id: str) -> None:
        """Add one to the session's processed image count."""
        response = (
            self.client.table(_TABLE)
            .select("processed_images")
            .eq("session_id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise RuntimeError(f"Session {session_id} not found")
        processed = int(response.data[0].get("processed_images") or 0)
        self.client.table(_TABLE).update({"processed_images": processed + 1}).eq(
            "session_id", session_id
        ).execute()

    def mark_completed(self, session_id: str) -> None:
        """Record the session as completed."""
        self.client.table(_TABLE).update(
            {
                "status": STATUS_COMPLETED,
                "completed_at": datetime.now(tz=UTC).isoformat(),
            }
        ).eq("session_id", session_id).execute()
