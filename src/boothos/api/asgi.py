"""ASGI entrypoint for the BoothOS API."""

from boothos.api.app import create_app
from boothos.containers import build_container

app = create_app(build_container())
