"""Domain errors raised by the coordination services."""


class CheckpointSyncError(Exception):
    """Base class for expected, user-facing failures."""


class NoImagesAvailableError(CheckpointSyncError):
    def __init__(self, checkpoint_name: str) -> None:
        super().__init__(
            f"No unprocessed images found for checkpoint {checkpoint_name!r}"
        )
        self.checkpoint_name = checkpoint_name


class SessionNotFoundError(CheckpointSyncError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id!r} not found")
        self.session_id = session_id


class SessionAlreadyCompletedError(CheckpointSyncError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id!r} is already completed")
        self.session_id = session_id


class SessionAlreadyActiveError(CheckpointSyncError):
    """Another device already runs a session for the checkpoint."""

    def __init__(self, checkpoint_name: str, session_id: str) -> None:
        super().__init__(
            f"Checkpoint {checkpoint_name!r} already has active session {session_id!r}"
        )
        self.checkpoint_name = checkpoint_name
        self.session_id = session_id


class ImageNotFoundError(CheckpointSyncError):
    def __init__(self, image_id: str) -> None:
        super().__init__(f"Original image {image_id!r} not found")
        self.image_id = image_id


class ImageAlreadyProcessedError(CheckpointSyncError):
    def __init__(self, image_id: str) -> None:
        super().__init__(f"Image {image_id!r} already processed")
        self.image_id = image_id


class ImageOutOfSequenceError(CheckpointSyncError):
    """A capture arrived for an image that is not the session's current one."""

    def __init__(self, session_id: str, image_id: str, expected_id: str | None) -> None:
        super().__init__(
            f"Image {image_id!r} is not the current image of session "
            f"{session_id!r} (expected {expected_id!r})"
        )
        self.session_id = session_id
        self.image_id = image_id
        self.expected_id = expected_id
