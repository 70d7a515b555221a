from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from nurushop.core.exceptions import BadRequestError
from nurushop.models.notification import Notification
from nurushop.services import notifications as notifications_service

router = APIRouter()


class UserMarkReadRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str = ""
    id: str | None = None
    ids: list[str] | None = None


def notification_out(n: Notification) -> dict:
    return {
        "id": str(n.id),
        "recipientType": n.recipient_type,
        "recipientId": n.recipient_id,
        "type": n.type,
        "title": n.title,
        "body": n.body,
        "relatedId": n.related_id,
        "readAt": n.read_at.isoformat() if n.read_at else None,
        "createdAt": n.created_at.isoformat(),
    }


@router.get("")
async def user_notifications(user_id: str = Query(..., alias="userId", min_length=1)):
    """Shopper inbox, newest first."""
    items = await notifications_service.list_notifications("user", user_id)
    return {"notifications": [notification_out(n) for n in items]}


@router.put("")
async def user_notifications_read(body: UserMarkReadRequest):
    ids = body.ids or ([body.id] if body.id else [])
    if not body.user_id or not ids:
        raise BadRequestError("userId and id required")
    updated = await notifications_service.mark_read("user", body.user_id, ids)
    return {"success": True, "updated": updated}
