"""Admin/user notifications: senior-admin fan-out and inbox reads."""

import asyncio
from datetime import datetime
from typing import Literal

from beanie.operators import In
from bson import ObjectId

from nurushop.core.logging import get_logger
from nurushop.models.notification import Notification
from nurushop.services.admins import senior_admin_ids

log = get_logger(__name__)


async def notify_senior_admins(title: str, body: str, type: str, related_id: str | None = None) -> int:
    """Write one unread notification per senior admin; return how many were written."""
    recipients = await senior_admin_ids()
    await asyncio.gather(
        *(
            Notification(
                recipient_type="admin",
                recipient_id=admin_id,
                type=type,
                title=title,
                body=body,
                related_id=related_id,
            ).insert()
            for admin_id in recipients
        )
    )
    log.info("notification_fanout", type=type, related_id=related_id, recipients=len(recipients))
    return len(recipients)


async def dispatch_senior_admin_notification(
    title: str, body: str, type: str, related_id: str | None = None
) -> int:
    """Best-effort fan-out run after the triggering write has committed.

    Failures are logged and reported as 0 deliveries; they never reach the caller.
    """
    try:
        return await notify_senior_admins(title, body, type, related_id)
    except Exception:
        log.exception("notification_fanout_failed", type=type, related_id=related_id)
        return 0


async def notify_user(user_id: str, title: str, body: str, type: str, related_id: str | None = None) -> Notification:
    n = Notification(
        recipient_type="user",
        recipient_id=user_id,
        type=type,
        title=title,
        body=body,
        related_id=related_id,
    )
    await n.insert()
    return n


async def dispatch_user_notification(
    user_id: str, title: str, body: str, type: str, related_id: str | None = None
) -> Notification | None:
    """Best-effort counterpart of notify_user for callers that have already committed."""
    try:
        return await notify_user(user_id, title, body, type, related_id)
    except Exception:
        log.exception("user_notification_failed", user_id=user_id, type=type, related_id=related_id)
        return None


async def list_notifications(
    recipient_type: Literal["admin", "user"], recipient_id: str, limit: int = 100
) -> list[Notification]:
    return (
        await Notification.find(
            Notification.recipient_type == recipient_type,
            Notification.recipient_id == recipient_id,
        )
        .sort(-Notification.created_at)
        .limit(limit)
        .to_list()
    )


async def mark_read(recipient_type: Literal["admin", "user"], recipient_id: str, ids: list[str]) -> int:
    """Set read_at on the caller's own unread notifications; ids belonging to others are ignored."""
    object_ids = [ObjectId(i) for i in ids if ObjectId.is_valid(i)]
    if not object_ids:
        return 0
    owned = await Notification.find(
        In(Notification.id, object_ids),
        Notification.recipient_type == recipient_type,
        Notification.recipient_id == recipient_id,
        Notification.read_at == None,  # noqa: E711
    ).to_list()
    now = datetime.utcnow()
    for n in owned:
        n.read_at = now
        await n.save()
    return len(owned)
