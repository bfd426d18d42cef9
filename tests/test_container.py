"""Tests for container wiring."""

import asyncio
from pathlib import Path

from checkpoint_sync.adapters.supabase_image_repository import SupabaseImageRepository
from checkpoint_sync.config import Settings
from checkpoint_sync.containers import build_container


def test_build_container_creates_services(settings: Settings) -> None:
    container = build_container(settings)

    assert isinstance(container.session_store.image_repository, SupabaseImageRepository)
    assert container.coordinator.registry is container.registry
    assert container.coordinator.session_store is container.session_store
    assert container.uploads_root == Path(settings.uploads_dir).resolve()
    assert container.uploads_root.is_dir()
    asyncio.run(container.close_resources())


def test_container_passes_coordinator_options(settings: Settings) -> None:
    tuned = settings.model_copy(
        update={
            "capture_timeout_seconds": 5.0,
            "capture_max_retries": 3,
            "server_push": True,
            "completed_session_retention": 7,
        }
    )

    container = build_container(tuned)

    assert container.coordinator.capture_timeout_seconds == 5.0
    assert container.coordinator.capture_max_retries == 3
    assert container.coordinator.server_push is True
    assert container.session_store.completed_retention == 7
