"""Dagster definitions for the reminder sweep."""

from dagster import Definitions
from src.dagster.reminders.jobs import sweep_reminders_job
from src.dagster.reminders.schedules import sweep_reminders_schedule

defs = Definitions(
    jobs=[sweep_reminders_job],
    schedules=[sweep_reminders_schedule],
)
