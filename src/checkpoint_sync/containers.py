"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import create_client

from checkpoint_sync.adapters.local_file_store import LocalFileStore
from checkpoint_sync.adapters.supabase_image_repository import SupabaseImageRepository
from checkpoint_sync.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from checkpoint_sync.config import Settings
from checkpoint_sync.services.coordinator import Coordinator
from checkpoint_sync.services.images import ImageRepository, ImageService
from checkpoint_sync.services.registry import DeviceRegistry
from checkpoint_sync.services.session_store import SessionRepository, SessionStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    uploads_root: Path
    image_service: ImageService
    session_store: SessionStore
    registry: DeviceRegistry
    coordinator: Coordinator
    close_resources: Callable[[], Awaitable[None]]


def wire_services(
    settings: Settings,
    image_repository: ImageRepository,
    session_repository: SessionRepository,
    uploads_root: Path,
) -> AppContainer:
    """Build the services around already constructed adapters."""
    image_service = ImageService(
        repository=image_repository,
        file_store=LocalFileStore(uploads_root),
    )
    session_store = SessionStore(
        image_repository=image_repository,
        session_repository=session_repository,
        completed_retention=settings.completed_session_retention,
    )
    registry = DeviceRegistry()
    coordinator = Coordinator(
        registry=registry,
        session_store=session_store,
        capture_timeout_seconds=settings.capture_timeout_seconds,
        capture_max_retries=settings.capture_max_retries,
        server_push=settings.server_push,
    )

    async def close_resources() -> None:
        await coordinator.shutdown()

    return AppContainer(
        settings=settings,
        uploads_root=uploads_root,
        image_service=image_service,
        session_store=session_store,
        registry=registry,
        coordinator=coordinator,
        close_resources=close_resources,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    uploads_root = Path(resolved_settings.uploads_dir).resolve()
    uploads_root.mkdir(parents=True, exist_ok=True)
    return wire_services(
        settings=resolved_settings,
        image_repository=SupabaseImageRepository(supabase_client),
        session_repository=SupabaseSessionRepository(supabase_client),
        uploads_root=uploads_root,
    )
