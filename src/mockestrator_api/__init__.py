"""HTTP surface of the mock intent orchestrator."""

from .main import create_app

__all__ = ["create_app"]
