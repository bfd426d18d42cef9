"""ASGI entrypoint for the checkpoint sync API."""

from checkpoint_sync.api.app import create_app
from checkpoint_sync.containers import build_container

app = create_app(build_container())
