"""Wallet redemptions: user request, senior-admin approval or rejection.

Requests never touch the balance. Approval claims the pending record first
(conditional on status == "pending") and only then debits, so a redemption
is settled at most once even when two admins act on it together.
"""

import math
from datetime import datetime
from typing import Any

from bson import ObjectId
from pymongo import ReturnDocument

from nurushop.core.audit import log_admin_action
from nurushop.core.exceptions import (
    AlreadyProcessedError,
    BadRequestError,
    BelowMinimumError,
    InsufficientFundsError,
    InvalidRequestError,
    NotFoundError,
    NotRedeemableError,
)
from nurushop.core.logging import get_logger
from nurushop.models.product import Product
from nurushop.models.user import User
from nurushop.models.wallet_redemption import WalletRedemption
from nurushop.services import notifications
from nurushop.services import wallet as wallet_service
from nurushop.services.admins import AdminIdentity, require_senior

log = get_logger(__name__)

STATUSES = ("pending", "approved", "rejected")


def _is_number(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and math.isfinite(value)


async def request_redemption(
    user_id: str,
    type: str,
    amount: float | None = None,
    phone: str | None = None,
    bank_details: str | None = None,
    product_id: str | None = None,
    product_name: str | None = None,
) -> WalletRedemption:
    """Create a pending redemption after gating on the wallet balance.

    cash: 150 <= amount <= balance and a phone or bank details.
    product: amount is the product's selling price at request time.
    """
    if not user_id or type not in ("cash", "product"):
        raise InvalidRequestError("Invalid request")
    user = await User.get(user_id)
    if not user:
        raise NotFoundError("User not found")

    balance = user.wallet_balance
    minimum = wallet_service.min_redemption()
    if balance < minimum:
        raise BelowMinimumError(details={"balance": balance, "minimum": minimum})

    phone = (phone or "").strip() or None
    bank_details = (bank_details or "").strip() or None

    if type == "cash":
        if not _is_number(amount) or amount < minimum or amount > balance:
            raise InvalidRequestError(
                "Invalid redemption amount", details={"minimum": minimum, "balance": balance}
            )
        if not phone and not bank_details:
            raise InvalidRequestError("Phone or bank details required")
        product_id = None
        product_name = None
    else:
        if not product_id:
            raise InvalidRequestError("Product required")
        product = await Product.get(product_id)
        if not product:
            raise NotFoundError("Product not found")
        product_name = product.name
        amount = product.effective_selling_price
        if not amount or amount <= 0:
            raise NotRedeemableError()
        if balance < amount:
            raise InsufficientFundsError(details={"balance": balance, "amount": amount})

    redemption = WalletRedemption(
        user_id=user_id,
        type=type,
        amount=amount,
        phone=phone,
        bank_details=bank_details,
        product_id=product_id,
        product_name=product_name,
    )
    await redemption.insert()
    log.info("redemption_requested", redemption_id=str(redemption.id), user_id=user_id, type=type, amount=amount)

    if type == "product":
        details = f"Product: {product_name}"
        body = f"{user_id} requested a product redemption. {details}"
    else:
        details = f"Phone: {phone}" if phone else f"Bank: {bank_details}"
        body = f"{user_id} wants to redeem KSh {amount}. {details}"
    await notifications.dispatch_senior_admin_notification(
        title="Redemption request",
        body=body.strip(),
        type="wallet",
        related_id=str(redemption.id),
    )
    return redemption


async def get_redemption(redemption_id: str) -> WalletRedemption:
    if not redemption_id or not ObjectId.is_valid(redemption_id):
        raise NotFoundError("Redemption not found")
    redemption = await WalletRedemption.get(redemption_id)
    if not redemption:
        raise NotFoundError("Redemption not found")
    return redemption


async def resolve_redemption(
    redemption_id: str,
    decision: str,
    admin: AdminIdentity | None,
) -> WalletRedemption:
    """Move a pending redemption to approved or rejected, exactly once.

    Approval debits the amount frozen at request time. If the wallet no longer
    covers it, InsufficientFundsError propagates and the redemption stays pending.
    """
    admin = require_senior(admin)
    if decision not in ("approved", "rejected"):
        raise BadRequestError("id and status required")
    redemption = await get_redemption(redemption_id)
    if redemption.status != "pending":
        raise AlreadyProcessedError(details={"status": redemption.status})
    if decision == "approved" and (not redemption.user_id or not redemption.amount):
        raise BadRequestError("Invalid redemption data")

    collection = WalletRedemption.get_motor_collection()
    claimed = await collection.find_one_and_update(
        {"_id": redemption.id, "status": "pending"},
        {"$set": {"status": decision, "approved_by": admin.admin_id, "approved_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if claimed is None:
        raise AlreadyProcessedError()

    if decision == "approved":
        try:
            await wallet_service.debit(
                redemption.user_id,
                redemption.amount,
                "redeem",
                metadata={"approved_by": admin.admin_id},
                redemption_id=str(redemption.id),
                idempotency_key=f"redeem:{redemption.id}",
            )
        except Exception:
            await collection.update_one(
                {"_id": redemption.id, "status": decision, "approved_by": admin.admin_id},
                {"$set": {"status": "pending", "approved_by": None, "approved_at": None}},
            )
            log.warning("redemption_debit_failed", redemption_id=str(redemption.id), user_id=redemption.user_id)
            raise

    action = "wallet_redeem_approved" if decision == "approved" else "wallet_redeem_rejected"
    await log_admin_action(admin.admin_id, action, "wallet_redemption", str(redemption.id), {"status": decision})
    log.info("redemption_resolved", redemption_id=str(redemption.id), status=decision, admin_id=admin.admin_id)
    await notifications.dispatch_user_notification(
        redemption.user_id,
        title="Redemption approved" if decision == "approved" else "Redemption rejected",
        body=f"Your {redemption.type} redemption of KSh {redemption.amount} was {decision}.",
        type="wallet",
        related_id=str(redemption.id),
    )
    return await get_redemption(str(redemption.id))


async def list_redemptions(status: str = "pending") -> list[WalletRedemption]:
    if status not in STATUSES:
        raise BadRequestError(f"Invalid status: {status}")
    return (
        await WalletRedemption.find(WalletRedemption.status == status)
        .sort(-WalletRedemption.created_at)
        .to_list()
    )


async def list_user_redemptions(user_id: str) -> list[WalletRedemption]:
    return (
        await WalletRedemption.find(WalletRedemption.user_id == user_id)
        .sort(-WalletRedemption.created_at)
        .to_list()
    )
