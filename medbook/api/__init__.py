"""HTTP API."""

from medbook.api.app import create_app

__all__ = ["create_app"]
