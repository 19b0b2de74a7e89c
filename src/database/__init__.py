"""Persistence layer: ORM models, sessions and operations."""
