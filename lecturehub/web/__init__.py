"""HTTP interface for LectureHub."""

from .server import create_app

__all__ = ["create_app"]
