"""Command line entry point serving the API with uvicorn."""

import uvicorn

from checkpoint_sync.config import Settings


def main() -> None:
    """Run the ASGI app on the configured host and port."""
    settings = Settings()
    print(f"Checkpoint Sync listening on http://{settings.host}:{settings.port}")
    uvicorn.run(
        "checkpoint_sync.api.asgi:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
