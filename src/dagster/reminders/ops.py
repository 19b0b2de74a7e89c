"""Dagster ops for the reminder sweep."""

from dagster import Backoff, Jitter, OpExecutionContext, RetryPolicy, op
from src.reminders.exceptions import SourceQueryError
from src.reminders.sweep import SweepSummary, run_reminder_sweep

# Maximum number of per-item failures written to the run log
MAX_FAILURES_LOGGED = 5

# Only a failed item listing raises, so only that is retried
SWEEP_RETRY_POLICY = RetryPolicy(
    max_retries=2,
    delay=30,
    backoff=Backoff.EXPONENTIAL,
    jitter=Jitter.FULL,
)


def _log_failures(context: OpExecutionContext, summary: SweepSummary) -> None:
    """Write the first few per-item failures to the run log.

    :param context: Dagster execution context.
    :param summary: The finished sweep.
    """
    failures = summary.failures
    if not failures:
        return

    for result in failures[:MAX_FAILURES_LOGGED]:
        context.log.warning(
            f"Item {result.item_id} (offset {result.offset}): {result.reason}"
            + (f" - {result.error}" if result.error else "")
        )
    if len(failures) > MAX_FAILURES_LOGGED:
        context.log.warning(f"... and {len(failures) - MAX_FAILURES_LOGGED} more")


@op(
    name="sweep_reminders",
    retry_policy=SWEEP_RETRY_POLICY,
    description="Send reminders whose offset window is open and record monthly usage.",
)
def sweep_reminders_op(context: OpExecutionContext) -> SweepSummary:
    """Run one reminder sweep.

    Per-item failures are reported in the summary and do not fail the op.
    A failure to list due items raises so the retry policy applies.

    :param context: Dagster execution context.
    :returns: The sweep summary.
    :raises SourceQueryError: If the due items cannot be listed.
    """
    context.log.info("Starting reminder sweep")

    try:
        summary = run_reminder_sweep()
    except SourceQueryError as e:
        context.log.error(f"Reminder sweep could not list due items: {e}")
        raise

    context.log.info(
        f"Reminder sweep complete: "
        f"checked={summary.checked}, "
        f"matched={len(summary.results)}, "
        f"sent={summary.sent}, "
        f"failed={len(summary.failures)}"
    )

    _log_failures(context, summary)

    return summary
