"""HTTP API for reminder quota and sweeps."""

from src.api.app import app

__all__ = ["app"]
