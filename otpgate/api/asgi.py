"""ASGI entry point configured from the environment."""

from .app import create_app

app = create_app(configure_logging=True)
