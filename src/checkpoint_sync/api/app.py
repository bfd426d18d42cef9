"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from checkpoint_sync.api.models import (
    CheckpointsResponse,
    SessionResponse,
    SpoofUploadResponse,
    StartSessionRequest,
    UploadResponse,
)
from checkpoint_sync.api.realtime import router as realtime_router
from checkpoint_sync.app_logging import configure_logging
from checkpoint_sync.config import parse_csv
from checkpoint_sync.containers import AppContainer
from checkpoint_sync.domain.errors import (
    CheckpointSyncError,
    ImageAlreadyProcessedError,
    ImageNotFoundError,
    ImageOutOfSequenceError,
    NoImagesAvailableError,
    SessionAlreadyActiveError,
    SessionAlreadyCompletedError,
    SessionNotFoundError,
)
from checkpoint_sync.domain.images import UPLOADS_URL_PREFIX
from checkpoint_sync.domain.sessions import Completed

_ERROR_STATUS: dict[type[CheckpointSyncError], int] = {
    NoImagesAvailableError: status.HTTP_404_NOT_FOUND,
    SessionNotFoundError: status.HTTP_404_NOT_FOUND,
    ImageNotFoundError: status.HTTP_404_NOT_FOUND,
    ImageAlreadyProcessedError: status.HTTP_409_CONFLICT,
    SessionAlreadyCompletedError: status.HTTP_409_CONFLICT,
    SessionAlreadyActiveError: status.HTTP_409_CONFLICT,
    ImageOutOfSequenceError: status.HTTP_409_CONFLICT,
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)
    settings = container.settings
    allowed_types = set(parse_csv(settings.allowed_image_types))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(title="Checkpoint Sync", lifespan=lifespan)
    app.state.container = container
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_csv(settings.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(realtime_router)
    container.uploads_root.mkdir(parents=True, exist_ok=True)
    app.mount(
        UPLOADS_URL_PREFIX,
        StaticFiles(directory=container.uploads_root),
        name="uploads",
    )

    async def read_image(upload: UploadFile) -> bytes:
        if upload.content_type not in allowed_types:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid file type. Only images allowed.",
            )
        content = await upload.read(settings.max_upload_bytes + 1)
        if len(content) > settings.max_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail="Image exceeds the upload size limit.",
            )
        return content

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/api/upload")
    async def upload_original(
        request: Request,
        checkpoint_name: str = Form(min_length=1, max_length=255),
        image: UploadFile = File(...),
    ) -> UploadResponse:
        """Store a reference image at the end of its checkpoint's queue."""
        state_container: AppContainer = request.app.state.container
        content = await read_image(image)
        try:
            record = await state_container.image_service.upload_original(
                checkpoint_name, image.filename or "", content
            )
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        return UploadResponse.from_record(record)

    @app.post("/api/upload-spoof")
    async def upload_spoof(
        request: Request,
        image_id: str = Form(min_length=1),
        checkpoint_name: str = Form(min_length=1, max_length=255),
        session_id: str = Form(min_length=1),
        spoof_image: UploadFile = File(...),
    ) -> SpoofUploadResponse:
        """Store the camera's capture for the session's current image."""
        state_container: AppContainer = request.app.state.container
        session_store = state_container.session_store
        try:
            capture_lock = session_store.capture_lock(session_id)
        except CheckpointSyncError as exc:
            raise _http_error(exc) from exc
        async with capture_lock:
            try:
                session_store.expect_current(session_id, image_id)
            except CheckpointSyncError as exc:
                raise _http_error(exc) from exc
            session = session_store.get(session_id)
            if session is None or session.checkpoint_name != checkpoint_name:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Session does not belong to this checkpoint.",
                )
            content = await read_image(spoof_image)
            try:
                image = await state_container.image_service.record_spoof(
                    image_id, checkpoint_name, content
                )
                result = await state_container.coordinator.confirm_capture(
                    checkpoint_name=checkpoint_name,
                    session_id=session_id,
                    image_id=image_id,
                    spoofed_file_path=image.spoofed_file_path or "",
                )
            except CheckpointSyncError as exc:
                logger.warning(
                    "Spoof upload rejected: %s",
                    exc,
                    extra={"image_id": image_id, "session_id": session_id},
                )
                raise _http_error(exc) from exc
        return SpoofUploadResponse(
            image_id=image_id,
            checkpoint_name=checkpoint_name,
            session_id=session_id,
            original_file_path=image.original_file_path,
            spoofed_file_path=image.spoofed_file_path or "",
            processed_at=image.processed_at,
            session_completed=isinstance(result, Completed),
        )

    @app.get("/api/checkpoints")
    async def checkpoints(request: Request) -> CheckpointsResponse:
        """Return image counts per checkpoint."""
        state_container: AppContainer = request.app.state.container
        summaries = await state_container.image_service.list_checkpoints()
        return CheckpointsResponse.from_summaries(summaries)

    @app.post("/api/start-session")
    async def start_session(
        payload: StartSessionRequest, request: Request
    ) -> SessionResponse:
        """Start, or resume, the display session of a checkpoint."""
        state_container: AppContainer = request.app.state.container
        try:
            session = await state_container.session_store.create_session(
                payload.checkpoint_name, payload.image_count, payload.device_id
            )
        except CheckpointSyncError as exc:
            raise _http_error(exc) from exc
        return SessionResponse.from_record(session)

    @app.get("/api/sessions/{session_id}")
    async def session_detail(session_id: str, request: Request) -> SessionResponse:
        """Return the live state of a session."""
        state_container: AppContainer = request.app.state.container
        session = state_container.session_store.get(session_id)
        if session is None:
            raise _http_error(SessionNotFoundError(session_id))
        return SessionResponse.from_record(session)

    return app


def _http_error(exc: CheckpointSyncError) -> HTTPException:
    """Map a domain error to its HTTP status."""
    status_code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=str(exc))
