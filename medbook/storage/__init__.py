"""Storage layer."""

from medbook.storage.database import MedbookDB

__all__ = ["MedbookDB"]
