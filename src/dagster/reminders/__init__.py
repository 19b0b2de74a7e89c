"""Dagster job and schedule for the reminder sweep."""

from src.dagster.reminders.definitions import defs
from src.dagster.reminders.jobs import sweep_reminders_job
from src.dagster.reminders.ops import sweep_reminders_op
from src.dagster.reminders.schedules import sweep_reminders_schedule

__all__ = [
    "defs",
    "sweep_reminders_job",
    "sweep_reminders_op",
    "sweep_reminders_schedule",
]
