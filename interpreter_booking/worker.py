"""
Booking worker: delivers queued notifications and times out
pending bookings nobody accepted
"""

import logging
import os

from arq.connections import RedisSettings
from arq.cron import cron

from . import models  # noqa: F401 - registers all models
from .database import SessionLocal

logger = logging.getLogger(__name__)


def get_redis_settings() -> RedisSettings:
    """Redis settings shared by the worker and the notification outbox"""
    redis_url = os.getenv("REDIS_URL")

    if redis_url:
        from urllib.parse import urlparse

        parsed = urlparse(redis_url)

        return RedisSettings(
            host=parsed.hostname or "localhost",
            port=parsed.port or 6379,
            password=parsed.password,
            ssl=parsed.scheme == "rediss",
            conn_timeout=15,
            conn_retry_delay=1,
        )
    return RedisSettings(
        host=os.getenv("REDIS_HOST", "localhost"),
        port=int(os.getenv("REDIS_PORT", "6379")),
        password=os.getenv("REDIS_PASSWORD"),
        ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
        conn_timeout=15,
        conn_retry_delay=1,
    )


async def dispatch_notifications_task(ctx, notifications: list[dict]):
    """
    Deliver notifications resolved by a booking operation

    Args:
        ctx: ARQ context
        notifications: Serialized OutboundNotification objects

    Returns:
        List of per-notification delivery summaries
    """
    from .services.notification_outbox import deserialize_notifications
    from .services.notification_service import NotificationDispatcher
    from .services.senders import DefaultMessageSender

    dispatcher = ctx.get("dispatcher") or NotificationDispatcher(DefaultMessageSender())
    reports = await dispatcher.dispatch_all(deserialize_notifications(notifications))
    return [r.summary() for r in reports]


async def expire_pending_bookings_task(ctx):
    """Cron job that times out pending bookings nobody accepted before will_expire_at"""
    from .domain.bookings.service import BookingService
    from .services.notification_outbox import dispatch_inline

    logger.info("⌛ Checking for expired pending bookings")
    db = SessionLocal()
    try:
        notifications = BookingService(db).expire_pending_bookings()
        await dispatch_inline(notifications, ctx.get("dispatcher"))
        logger.info(f"Expiry check complete: {len(notifications)} customers notified")
        return {"expired": len(notifications)}
    except Exception as e:
        logger.error(f"❌ Expiry check failed: {str(e)}")
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [dispatch_notifications_task, expire_pending_bookings_task]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "20"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "300"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))

    health_check_interval = 60

    # Delivery failures are logged per recipient, so a retry would resend to everyone
    max_tries = 1

    cron_jobs = [
        cron(expire_pending_bookings_task, minute=set(range(0, 60, 5))),  # every 5 minutes
    ]

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
