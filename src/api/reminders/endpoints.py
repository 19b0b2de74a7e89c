"""API endpoints for reminder items, quota, sweeps and failed deliveries."""

import logging
import time
import uuid as uuid_module
from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.dependencies import get_current_user_id, verify_service_token
from src.api.models import SuccessResponse
from src.api.reminders.models import (
    CurrentMonthUsage,
    FailedDeliveryListResponse,
    FailedDeliveryResponse,
    MonthlyUsageEntry,
    QuotaInsights,
    QuotaResponse,
    ReminderItemListResponse,
    ReminderItemResponse,
    SweepItemResponse,
    SweepResponse,
    UsageStatsResponse,
)
from src.database.connection import get_session
from src.database.notification_logs import list_failed_notifications
from src.database.reminders import ReminderItem, get_item_by_id, list_items_for_user
from src.reminders.exceptions import SourceQueryError
from src.reminders.matcher import effective_offsets
from src.reminders.quota import QuotaEngine, QuotaStatus, round_half_up
from src.reminders.sweep import run_reminder_sweep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reminders", tags=["Reminders"])


def _current_month(quota: QuotaStatus) -> CurrentMonthUsage:
    return CurrentMonthUsage(
        usage=quota.usage,
        limit=quota.limit,
        remaining=quota.remaining,
        usage_percentage=quota.usage_percentage,
        can_create_reminder=quota.can_create,
    )


def _insights(quota: QuotaStatus) -> QuotaInsights:
    return QuotaInsights(
        is_near_limit=quota.is_near_limit,
        should_upgrade=quota.should_upgrade,
    )


def _item_to_response(item: ReminderItem) -> ReminderItemResponse:
    return ReminderItemResponse(
        id=item.id,
        item_type=item.item_type,
        title=item.title,
        due_at=item.due_at,
        reminder_offsets=effective_offsets(item),
        sent_offsets=list(item.sent_offsets or []),
        reminder_enabled=item.reminder_enabled,
        status=item.status,
    )


@router.get(
    "/quota",
    response_model=SuccessResponse[QuotaResponse],
    summary="Get reminder quota",
)
def get_quota(
    user_id: uuid_module.UUID = Depends(get_current_user_id),
) -> SuccessResponse[QuotaResponse]:
    """Get the authenticated user's reminder quota for the current month.

    :param user_id: The authenticated user.
    :returns: Usage, limit and upgrade signals.
    """
    logger.info(f"Quota requested: user_id={user_id}")

    with get_session() as session:
        quota = QuotaEngine(session).status(user_id)

    data = QuotaResponse(
        **_current_month(quota).model_dump(),
        plan_type=quota.plan_type,
        insights=_insights(quota),
    )
    return SuccessResponse[QuotaResponse](data=data)


@router.get(
    "/stats",
    response_model=SuccessResponse[UsageStatsResponse],
    summary="Get reminder usage statistics",
)
def get_usage_stats(
    user_id: uuid_module.UUID = Depends(get_current_user_id),
) -> SuccessResponse[UsageStatsResponse]:
    """Get current quota plus a six month usage breakdown.

    :param user_id: The authenticated user.
    :returns: Current month, monthly breakdown, average and peak usage.
    """
    logger.info(f"Usage stats requested: user_id={user_id}")
    now = datetime.now(UTC)

    with get_session() as session:
        engine = QuotaEngine(session)
        quota = engine.status(user_id, now)
        breakdown = engine.monthly_breakdown(user_id, quota.limit, now)

    used = [month.used for month in breakdown]
    data = UsageStatsResponse(
        current_month=_current_month(quota),
        monthly_breakdown=[
            MonthlyUsageEntry(month_key=month.month_key, used=month.used, limit=month.limit)
            for month in breakdown
        ],
        average_monthly_usage=round_half_up(sum(used), len(used)) if used else 0,
        max_monthly_usage=max(used, default=0),
        plan_type=quota.plan_type,
        insights=_insights(quota),
    )
    return SuccessResponse[UsageStatsResponse](data=data)


@router.post(
    "/sweep",
    response_model=SuccessResponse[SweepResponse],
    summary="Run a reminder sweep",
    dependencies=[Depends(verify_service_token)],
)
def trigger_sweep() -> SuccessResponse[SweepResponse]:
    """Run one reminder sweep now.

    :returns: The sweep summary.
    :raises HTTPException: 503 if the due items could not be listed.
    """
    start = time.perf_counter()
    logger.info("Reminder sweep triggered via API")

    try:
        summary = run_reminder_sweep()
    except SourceQueryError as e:
        logger.error(f"Reminder sweep failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminder source unavailable",
        ) from e

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"Reminder sweep via API complete: sent={summary.sent}, elapsed={elapsed_ms:.0f}ms"
    )

    data = SweepResponse(
        checked=summary.checked,
        sent=summary.sent,
        results=[SweepItemResponse(**result.model_dump()) for result in summary.results],
        timestamp=summary.timestamp,
    )
    return SuccessResponse[SweepResponse](data=data)


@router.get(
    "/items",
    response_model=SuccessResponse[ReminderItemListResponse],
    summary="List reminded items",
)
def list_items(
    include_resolved: bool = Query(False, alias="includeResolved"),
    limit: int = Query(200, ge=1, le=500),
    user_id: uuid_module.UUID = Depends(get_current_user_id),
) -> SuccessResponse[ReminderItemListResponse]:
    """List the authenticated user's items for a client-side reminder scheduler.

    :param include_resolved: Whether to include completed and cancelled items.
    :param limit: Maximum number of items to return.
    :param user_id: The authenticated user.
    :returns: Items ordered by due time, with effective offsets.
    """
    start = time.perf_counter()
    logger.info(f"List reminder items: user_id={user_id}, include_resolved={include_resolved}")

    with get_session() as session:
        items = list_items_for_user(session, user_id, include_resolved, limit)
        results = [_item_to_response(item) for item in items]

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"List reminder items complete: count={len(results)}, elapsed={elapsed_ms:.0f}ms")

    return SuccessResponse[ReminderItemListResponse](
        data=ReminderItemListResponse(results=results)
    )


@router.get(
    "/items/{item_id}",
    response_model=SuccessResponse[ReminderItemResponse],
    summary="Get reminded item",
)
def get_item(
    item_id: uuid_module.UUID,
    user_id: uuid_module.UUID = Depends(get_current_user_id),
) -> SuccessResponse[ReminderItemResponse]:
    """Get one of the authenticated user's items.

    :param item_id: Item ID.
    :param user_id: The authenticated user.
    :returns: The item with its effective offsets.
    :raises HTTPException: 404 if the item does not exist or belongs to someone else.
    """
    logger.info(f"Get reminder item: id={item_id}, user_id={user_id}")

    with get_session() as session:
        item = get_item_by_id(session, item_id)
        if item is None or item.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Item not found: {item_id}",
            )
        response = _item_to_response(item)

    return SuccessResponse[ReminderItemResponse](data=response)


@router.get(
    "/deliveries/failed",
    response_model=SuccessResponse[FailedDeliveryListResponse],
    summary="List failed reminder deliveries",
    dependencies=[Depends(verify_service_token)],
)
def list_failed_deliveries(
    since_hours: int = Query(24, ge=1, le=720, alias="sinceHours"),
    limit: int = Query(100, ge=1, le=500),
) -> SuccessResponse[FailedDeliveryListResponse]:
    """List recent delivery attempts the gateway did not accept, for manual resend.

    :param since_hours: How many hours back to look.
    :param limit: Maximum number of entries to return.
    :returns: Failed attempts, newest first.
    """
    logger.info(f"List failed deliveries: since_hours={since_hours}, limit={limit}")
    since = datetime.now(UTC) - timedelta(hours=since_hours)

    with get_session() as session:
        entries = list_failed_notifications(session, since, limit)
        results = [
            FailedDeliveryResponse(
                id=entry.id,
                user_id=entry.user_id,
                item_id=entry.item_id,
                channel=entry.channel,
                reminder_time_minutes=entry.reminder_time_minutes,
                recipient=entry.recipient,
                message_content=entry.message_content,
                error_message=entry.error_message,
                status_code=entry.status_code,
                created_at=entry.created_at,
            )
            for entry in entries
        ]

    return SuccessResponse[FailedDeliveryListResponse](
        data=FailedDeliveryListResponse(results=results)
    )
