"""Supabase-backed reference image repository."""

from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from checkpoint_sync.domain.errors import (
    ImageAlreadyProcessedError,
    ImageNotFoundError,
)
from checkpoint_sync.domain.images import (
    CheckpointSummary,
    ImageQueueEntry,
    ImageRecord,
)
from checkpoint_sync.services.images import ImageRepository

_TABLE = "image_info"
_COLUMNS = (
    "image_id, checkpoint_name, original_filename, original_file_path, "
    "sequence_order, file_extension, is_processed, spoofed_file_path, "
    "uploaded_at, processed_at"
)


@dataclass
class SupabaseImageRepository(ImageRepository):
    """Supabase implementation for reference image metadata."""

    client: Client

    def find_unprocessed(self, checkpoint_name: str, limit: int) -> list[ImageQueueEntry]:
        """Return the oldest unprocessed images of a checkpoint."""
        response = (
            self.client.table(_TABLE)
            .select("image_id, sequence_order, original_file_path")
            .eq("checkpoint_name", checkpoint_name)
            .eq("is_processed", False)
            .order("sequence_order", desc=False)
            .limit(limit)
            .execute()
        )
        return [
            ImageQueueEntry(
                image_id=row["image_id"],
                sequence_order=int(row["sequence_order"]),
                original_file_path=row["original_file_path"],
            )
            for row in response.data or []
        ]

    def get_image(self, image_id: str, checkpoint_name: str) -> ImageRecord | None:
        """Return an image row, if present."""
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("image_id", image_id)
            .eq("checkpoint_name", checkpoint_name)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def create_image(self, record: ImageRecord) -> None:
        """Insert an image row."""
        response = (
            self.client.table(_TABLE)
            .insert(
                {
                    "image_id": record.image_id,
                    "checkpoint_name": record.checkpoint_name,
                    "original_filename": record.original_filename,
                    "original_file_path": record.original_file_path,
                    "sequence_order": record.sequence_order,
                    "file_extension": record.file_extension,
                    "is_processed": False,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create image")

    def mark_processed(self, image_id: str, spoofed_file_path: str) -> None:
        """Mark an unprocessed image processed."""
        response = (
            self.client.table(_TABLE)
            .update(
                {
                    "is_processed": True,
                    "spoofed_file_path": spoofed_file_path,
                    "processed_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("image_id", image_id)
            .eq("is_processed", False)
            .execute()
        )
        if response.data:
            return
        existing = (
            self.client.table(_TABLE)
            .select("image_id")
            .eq("image_id", image_id)
            .limit(1)
            .execute()
        )
        if not existing.data:
            raise ImageNotFoundError(image_id)
        raise ImageAlreadyProcessedError(image_id)

    def next_sequence_order(self, checkpoint_name: str) -> int:
        """Return one past the highest sequence order of a checkpoint."""
        response = (
            self.client.table(_TABLE)
            .select("sequence_order")
            .eq("checkpoint_name", checkpoint_name)
            .order("sequence_order", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data or response.data[0].get("sequence_order") is None:
            return 1
        return int(response.data[0]["sequence_order"]) + 1

    def list_checkpoints(self) -> list[CheckpointSummary]:
        """Return image counts grouped by checkpoint."""
        response = (
            self.client.table(_TABLE).select("checkpoint_name, is_processed").execute()
        )
        totals: dict[str, list[int]] = defaultdict(lambda: [0, 0])
        for row in response.data or []:
            counts = totals[row["checkpoint_name"]]
            counts[0] += 1
            if row.get("is_processed"):
                counts[1] += 1
        return [
            CheckpointSummary(
                name=name,
                total_images=total,
                processed_images=processed,
                pending_images=total - processed,
            )
            for name, (total, processed) in sorted(totals.items())
        ]


def _parse_row(row: dict[str, object]) -> ImageRecord:
    return ImageRecord(
        image_id=str(row["image_id"]),
        checkpoint_name=str(row["checkpoint_name"]),
        original_filename=str(row["original_filename"]),
        original_file_path=str(row["original_file_path"]),
        sequence_order=int(row["sequence_order"]),  # type: ignore[arg-type]
        file_extension=str(row.get("file_extension") or ".jpg"),
        is_processed=bool(row.get("is_processed")),
        spoofed_file_path=(
            str(row["spoofed_file_path"]) if row.get("spoofed_file_path") else None
        ),
        uploaded_at=_parse_timestamp(row.get("uploaded_at")),
        processed_at=_parse_timestamp(row.get("processed_at")),
    )


def _parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None
