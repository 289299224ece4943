"""ASGI entrypoint for the voice logger API."""

from voice_logger.api.app import create_app
from voice_logger.containers import build_container

app = create_app(build_container())
