"""Reminder scheduling, dispatch and quota service."""
