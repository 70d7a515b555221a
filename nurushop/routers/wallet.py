from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from nurushop.core.exceptions import AppError
from nurushop.deps import rate_limited
from nurushop.models.wallet_redemption import WalletRedemption
from nurushop.models.wallet_transaction import WalletTransaction
from nurushop.services import redemptions as redemptions_service
from nurushop.services import wallet as wallet_service

router = APIRouter()


class RedeemRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str = ""
    type: str = ""
    amount: float | None = None
    phone: str | None = None
    bank_details: str | None = None
    product_id: str | None = None
    product_name: str | None = None


def transaction_out(t: WalletTransaction) -> dict:
    return {
        "id": str(t.id),
        "userId": t.user_id,
        "type": t.type,
        "amount": t.amount,
        "balanceAfter": t.balance_after,
        "source": t.source,
        "metadata": t.metadata,
        "redemptionId": t.redemption_id,
        "orderId": t.order_id,
        "status": t.status,
        "createdAt": t.created_at.isoformat(),
    }


def redemption_out(r: WalletRedemption) -> dict:
    return {
        "id": str(r.id),
        "userId": r.user_id,
        "type": r.type,
        "amount": r.amount,
        "phone": r.phone,
        "bankDetails": r.bank_details,
        "productId": r.product_id,
        "productName": r.product_name,
        "status": r.status,
        "approvedBy": r.approved_by,
        "approvedAt": r.approved_at.isoformat() if r.approved_at else None,
        "createdAt": r.created_at.isoformat(),
    }


@router.get("")
async def get_wallet(user_id: str = Query(..., alias="userId", min_length=1)):
    """Balance plus transaction and redemption history (newest first)."""
    balance = await wallet_service.get_balance(user_id)
    transactions = await wallet_service.list_transactions(user_id)
    redemptions = await redemptions_service.list_user_redemptions(user_id)
    return {
        "walletBalance": balance,
        "transactions": [transaction_out(t) for t in transactions],
        "redemptions": [redemption_out(r) for r in redemptions],
    }


@router.post("", dependencies=[Depends(rate_limited("wallet"))])
async def post_wallet():
    """Direct wallet writes are not exposed to shoppers."""
    raise AppError("Not implemented", code="METHOD_NOT_ALLOWED", status_code=status.HTTP_405_METHOD_NOT_ALLOWED)


@router.post("/redeem", dependencies=[Depends(rate_limited("redeem"))])
async def redeem(body: RedeemRequest):
    """Submit a cash or product redemption for senior-admin approval."""
    redemption = await redemptions_service.request_redemption(
        body.user_id,
        body.type,
        amount=body.amount,
        phone=body.phone,
        bank_details=body.bank_details,
        product_id=body.product_id,
        product_name=body.product_name,
    )
    return {"success": True, "id": str(redemption.id)}
