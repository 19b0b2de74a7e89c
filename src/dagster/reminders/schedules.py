"""Dagster schedules for the reminder sweep."""

from dagster import DefaultScheduleStatus, ScheduleDefinition
from src.dagster.reminders.jobs import sweep_reminders_job

# Sweep every 5 minutes, matching the width of the firing window
sweep_reminders_schedule = ScheduleDefinition(
    name="sweep_reminders_schedule",
    job=sweep_reminders_job,
    cron_schedule="*/5 * * * *",
    execution_timezone="UTC",
    default_status=DefaultScheduleStatus.RUNNING,
)
