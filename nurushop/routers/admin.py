from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from nurushop.core.exceptions import BadRequestError
from nurushop.core.pagination import paginate
from nurushop.deps import get_current_admin, get_optional_admin, require_senior_admin
from nurushop.routers.notifications import notification_out
from nurushop.routers.wallet import redemption_out
from nurushop.services import notifications as notifications_service
from nurushop.services import redemptions as redemptions_service
from nurushop.services import wallet as wallet_service
from nurushop.services.admins import AdminIdentity

router = APIRouter()


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AdjustRequest(_CamelModel):
    user_id: str = ""
    amount: float | None = None
    type: str = ""
    reason: str | None = None


class AffiliateRewardRequest(_CamelModel):
    order_id: str = ""
    buyer_id: str = ""
    referrer_id: str | None = None
    order_total: float = 0


class ResolveRedemptionRequest(_CamelModel):
    id: str = ""
    status: str = ""


class MarkReadRequest(_CamelModel):
    id: str | None = None
    ids: list[str] | None = None


@router.get("/me")
async def admin_me(admin: AdminIdentity = Depends(get_current_admin)):
    return {"admin": admin.as_dict()}


@router.post("/wallet/adjust")
async def wallet_adjust(body: AdjustRequest, admin: AdminIdentity | None = Depends(get_optional_admin)):
    """Senior admin: credit or debit a user's wallet (source 'adjustment')."""
    result = await wallet_service.adjust_wallet(admin, body.user_id, body.amount, body.type, body.reason or "")
    return {"success": True, "before": result.before, "after": result.after}


@router.post("/wallet/affiliate")
async def wallet_affiliate(body: AffiliateRewardRequest, admin: AdminIdentity | None = Depends(get_optional_admin)):
    """Senior admin: pay the referrer's commission for a delivered order (once per order)."""
    result = await wallet_service.award_affiliate_commission(
        admin, body.order_id, body.buyer_id, body.referrer_id, body.order_total
    )
    if result is None:
        return {"success": True, "awarded": False, "amount": 0}
    return {"success": True, "awarded": not result.replayed, "amount": result.transaction.amount}


@router.get("/wallet/reconcile")
async def wallet_reconcile(
    user_id: str = Query(..., alias="userId", min_length=1),
    admin: AdminIdentity = Depends(require_senior_admin),
):
    """Senior admin: compare stored balance with the ledger sum."""
    return await wallet_service.reconcile(user_id)


@router.get("/wallet/redemptions")
async def list_redemptions(
    status: str = Query("pending"),
    admin: AdminIdentity = Depends(require_senior_admin),
):
    redemptions = await redemptions_service.list_redemptions(status)
    return {"redemptions": [redemption_out(r) for r in redemptions]}


@router.put("/wallet/redemptions")
async def resolve_redemption(
    body: ResolveRedemptionRequest,
    admin: AdminIdentity | None = Depends(get_optional_admin),
):
    """Senior admin: approve (debits the wallet) or reject a pending redemption."""
    if not body.id or body.status not in ("approved", "rejected"):
        raise BadRequestError("id and status required")
    await redemptions_service.resolve_redemption(body.id, body.status, admin)
    return {"success": True}


@router.get("/notifications")
async def admin_notifications(
    admin: AdminIdentity = Depends(get_current_admin),
    limit: int = Query(100, ge=1, le=200),
):
    limit, _ = paginate(limit, 0)
    items = await notifications_service.list_notifications("admin", admin.admin_id, limit=limit)
    return {"notifications": [notification_out(n) for n in items]}


@router.put("/notifications")
async def admin_notifications_read(body: MarkReadRequest, admin: AdminIdentity = Depends(get_current_admin)):
    ids = body.ids or ([body.id] if body.id else [])
    if not ids:
        raise BadRequestError("id required")
    updated = await notifications_service.mark_read("admin", admin.admin_id, ids)
    return {"success": True, "updated": updated}
