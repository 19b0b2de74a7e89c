"""Dagster jobs for the reminder sweep."""

from dagster import job
from src.dagster.reminders.ops import sweep_reminders_op


@job(
    name="sweep_reminders_job",
    description="Send due reminders (runs every 5 minutes).",
)
def sweep_reminders_job() -> None:
    """Reminder sweep job.

    Lists items due within the lookahead window, marks each in-window offset
    sent, checks the owner's monthly quota and dispatches the reminder.
    """
    sweep_reminders_op()
