"""ASGI entrypoint for the PhotoPick API."""

from photopick.api.app import create_app

app = create_app()
