"""
Notification outbox

Hands resolved notifications to the arq worker. When the queue is disabled or
Redis is unreachable the notifications are dispatched in-process instead, so a
queue outage delays nothing but never drops a message.
"""

import logging
from typing import Optional

from arq import create_pool

from ..config import NOTIFICATION_QUEUE_ENABLED
from .notification_service import NotificationDispatcher, OutboundNotification
from .senders import DefaultMessageSender

logger = logging.getLogger(__name__)


def serialize_notifications(notifications: list[OutboundNotification]) -> list[dict]:
    return [n.model_dump(mode="json") for n in notifications]


def deserialize_notifications(data: list[dict]) -> list[OutboundNotification]:
    return [OutboundNotification.model_validate(item) for item in data]


async def dispatch_inline(
    notifications: list[OutboundNotification], dispatcher: Optional[NotificationDispatcher] = None
) -> None:
    dispatcher = dispatcher or NotificationDispatcher(DefaultMessageSender())
    await dispatcher.dispatch_all(notifications)


async def enqueue_notifications(
    notifications: list[OutboundNotification], queue_enabled: bool = NOTIFICATION_QUEUE_ENABLED
) -> Optional[str]:
    """
    Queue notifications for the worker.

    Returns:
        The arq job id, or None when the notifications were dispatched inline
    """
    if not notifications:
        return None

    if queue_enabled:
        from ..worker import get_redis_settings

        try:
            pool = await create_pool(get_redis_settings())
            try:
                job = await pool.enqueue_job("dispatch_notifications_task", serialize_notifications(notifications))
            finally:
                await pool.close()
            if job is not None:
                logger.info(f"📬 Queued {len(notifications)} notifications as job {job.job_id}")
                return job.job_id
        except Exception as e:
            logger.warning(f"⚠️ Failed to queue notifications, dispatching inline: {e}")

    await dispatch_inline(notifications)
    return None
