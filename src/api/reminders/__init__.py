"""Reminder quota and sweep API."""

from src.api.reminders.endpoints import router

__all__ = ["router"]
