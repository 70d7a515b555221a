"""Wallet ledger: the only writer of User.wallet_balance.

Every balance change is a single conditional update on the user document
followed by one appended WalletTransaction. Debits are guarded inside the
update filter (wallet_balance >= amount), so concurrent debits against the
same user cannot both pass the balance check.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from nurushop.core.audit import log_admin_action
from nurushop.core.config import get_settings
from nurushop.core.exceptions import (
    BadRequestError,
    ConflictError,
    InsufficientFundsError,
    InvalidAmountError,
)
from nurushop.core.logging import get_logger
from nurushop.models.user import User
from nurushop.models.wallet_transaction import WalletTransaction
from nurushop.services import notifications
from nurushop.services.admins import AdminIdentity, require_senior

log = get_logger(__name__)

SOURCES = ("adjustment", "redeem", "affiliate")


@dataclass
class LedgerResult:
    before: float
    after: float
    transaction: WalletTransaction
    replayed: bool = False


def min_redemption() -> int:
    return get_settings().min_redemption


def crossed_redemption_threshold(before: float, after: float) -> bool:
    """True when a balance moves from below the redemption minimum to at or above it."""
    threshold = min_redemption()
    return before < threshold <= after


def _validate_amount(amount: Any) -> float:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidAmountError(details={"amount": repr(amount)})
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidAmountError(details={"amount": amount})
    return amount


def _validate_source(source: str) -> None:
    if source not in SOURCES:
        raise BadRequestError(f"Invalid source: {source}")


async def get_balance(user_id: str) -> float:
    """Return current balance for user (0 if no record)."""
    user = await User.get(user_id)
    return user.wallet_balance if user else 0


async def list_transactions(user_id: str, limit: int = 200) -> list[WalletTransaction]:
    return (
        await WalletTransaction.find(WalletTransaction.user_id == user_id)
        .sort(-WalletTransaction.created_at)
        .limit(limit)
        .to_list()
    )


async def _find_replay(user_id: str, idempotency_key: str | None) -> LedgerResult | None:
    if not idempotency_key:
        return None
    existing = await WalletTransaction.find_one(
        WalletTransaction.user_id == user_id,
        WalletTransaction.idempotency_key == idempotency_key,
    )
    if not existing:
        return None
    delta = existing.amount if existing.type == "credit" else -existing.amount
    return LedgerResult(
        before=existing.balance_after - delta,
        after=existing.balance_after,
        transaction=existing,
        replayed=True,
    )


async def _replay_after_conflict(user_id: str, idempotency_key: str) -> LedgerResult:
    replay = await _find_replay(user_id, idempotency_key)
    if replay is None:
        raise ConflictError("Wallet update conflicted; retry the request", details={"user_id": user_id})
    return replay


async def _increment_balance(user_id: str, delta: float) -> dict | None:
    """Apply delta to the user's balance in one conditional update.

    Credits upsert the user record; debits only match when the current
    balance covers the amount. Returns the updated document or None when the
    debit guard did not match.
    """
    collection = User.get_motor_collection()
    now = datetime.utcnow()
    update: dict[str, Any] = {
        "$inc": {"wallet_balance": delta},
        "$set": {"wallet_updated_at": now},
    }
    if delta > 0:
        update["$setOnInsert"] = {"name": "", "email": None, "referred_by": None, "created_at": now}
        query: dict[str, Any] = {"_id": user_id}
        upsert = True
    else:
        query = {"_id": user_id, "wallet_balance": {"$gte": -delta}}
        upsert = False

    retries = get_settings().ledger_max_retries
    for attempt in range(1, retries + 1):
        try:
            return await collection.find_one_and_update(
                query,
                update,
                upsert=upsert,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # Two first-credits raced to create the same user; the loser retries as an update.
            log.warning("wallet_upsert_conflict", user_id=user_id, attempt=attempt)
    raise ConflictError("Wallet update conflicted; retry the request", details={"user_id": user_id})


async def _append_transaction(
    user_id: str,
    delta: float,
    updated: dict,
    tx_type: Literal["credit", "debit"],
    amount: float,
    source: str,
    metadata: dict[str, Any],
    redemption_id: str | None,
    order_id: str | None,
    idempotency_key: str | None,
) -> WalletTransaction | None:
    """Insert the ledger row for an applied delta.

    Returns None when a concurrent call already recorded the same idempotency
    key; the delta is undone and the caller replays the recorded row.
    """
    tx = WalletTransaction(
        user_id=user_id,
        type=tx_type,
        amount=amount,
        balance_after=updated["wallet_balance"],
        source=source,
        metadata=metadata,
        redemption_id=redemption_id,
        order_id=order_id,
        idempotency_key=idempotency_key,
    )
    try:
        await tx.insert()
    except Exception as exc:
        # Keep balance and ledger paired: undo the balance change first.
        await User.get_motor_collection().update_one({"_id": user_id}, {"$inc": {"wallet_balance": -delta}})
        if idempotency_key and isinstance(exc, DuplicateKeyError):
            log.info("wallet_idempotency_conflict", user_id=user_id, idempotency_key=idempotency_key)
            return None
        log.exception("wallet_transaction_insert_failed", user_id=user_id, type=tx_type, amount=amount)
        raise
    return tx


async def credit(
    user_id: str,
    amount: float,
    source: str,
    metadata: dict[str, Any] | None = None,
    order_id: str | None = None,
    idempotency_key: str | None = None,
) -> LedgerResult:
    """Add amount to the user's wallet and record a credit transaction.

    A user without a record is treated as balance 0 and created.
    Returns before/after so callers can detect threshold crossings.
    """
    amount = _validate_amount(amount)
    _validate_source(source)
    replay = await _find_replay(user_id, idempotency_key)
    if replay:
        return replay

    updated = await _increment_balance(user_id, amount)
    tx = await _append_transaction(
        user_id, amount, updated, "credit", amount, source, metadata or {}, None, order_id, idempotency_key
    )
    if tx is None:
        return await _replay_after_conflict(user_id, idempotency_key)
    after = updated["wallet_balance"]
    before = after - amount
    log.info("wallet_credited", user_id=user_id, amount=amount, source=source, before=before, after=after)
    return LedgerResult(before=before, after=after, transaction=tx)


async def debit(
    user_id: str,
    amount: float,
    source: str,
    metadata: dict[str, Any] | None = None,
    redemption_id: str | None = None,
    idempotency_key: str | None = None,
) -> LedgerResult:
    """Subtract amount from the user's wallet; fails with InsufficientFundsError and no write if it would go negative."""
    amount = _validate_amount(amount)
    _validate_source(source)
    replay = await _find_replay(user_id, idempotency_key)
    if replay:
        return replay

    updated = await _increment_balance(user_id, -amount)
    if updated is None:
        balance = await get_balance(user_id)
        log.info("wallet_debit_rejected", user_id=user_id, amount=amount, balance=balance, source=source)
        raise InsufficientFundsError(details={"balance": balance, "amount": amount})

    meta = dict(metadata or {})
    if redemption_id:
        meta.setdefault("redemption_id", redemption_id)
    tx = await _append_transaction(
        user_id, -amount, updated, "debit", amount, source, meta, redemption_id, None, idempotency_key
    )
    if tx is None:
        return await _replay_after_conflict(user_id, idempotency_key)
    after = updated["wallet_balance"]
    before = after + amount
    log.info("wallet_debited", user_id=user_id, amount=amount, source=source, before=before, after=after)
    return LedgerResult(before=before, after=after, transaction=tx)


async def reconcile(user_id: str) -> dict[str, Any]:
    """Compare the stored balance with credits minus debits from the ledger."""
    balance = await get_balance(user_id)
    entries = await WalletTransaction.find(WalletTransaction.user_id == user_id).to_list()
    ledger_total = sum(e.amount if e.type == "credit" else -e.amount for e in entries)
    return {
        "user_id": user_id,
        "balance": balance,
        "ledger_total": ledger_total,
        "transactions": len(entries),
        "consistent": math.isclose(balance, ledger_total, abs_tol=1e-9),
    }


async def notify_if_redeemable(user_id: str, result: LedgerResult) -> None:
    if result.replayed or not crossed_redemption_threshold(result.before, result.after):
        return
    await notifications.dispatch_senior_admin_notification(
        title="Wallet ready for redemption",
        body=f"User {user_id} wallet is ready for redemption.",
        type="wallet",
        related_id=user_id,
    )


async def adjust_wallet(
    admin: AdminIdentity | None,
    user_id: str,
    amount: float,
    type: Literal["credit", "debit"],
    reason: str = "",
) -> LedgerResult:
    """Senior-admin credit or debit with source 'adjustment'."""
    admin = require_senior(admin)
    if not user_id:
        raise BadRequestError("userId required")
    if type not in ("credit", "debit"):
        raise BadRequestError("type must be credit or debit")
    metadata = {"reason": reason or "", "admin_id": admin.admin_id}
    if type == "credit":
        result = await credit(user_id, amount, "adjustment", metadata=metadata)
        await notify_if_redeemable(user_id, result)
    else:
        result = await debit(user_id, amount, "adjustment", metadata=metadata)
    await log_admin_action(
        admin.admin_id,
        "wallet_adjustment",
        "user",
        user_id,
        {"amount": amount, "type": type, "reason": reason or ""},
    )
    return result


async def award_affiliate_commission(
    admin: AdminIdentity | None,
    order_id: str,
    buyer_id: str,
    referrer_id: str | None,
    order_total: float,
) -> LedgerResult | None:
    """Credit the referrer a commission on a delivered order, at most once per order.

    Returns None when nothing is owed (no referrer, self-referral, zero commission).
    """
    admin = require_senior(admin)
    if not order_id:
        raise BadRequestError("orderId required")
    if not referrer_id and buyer_id:
        buyer = await User.get(buyer_id)
        referrer_id = buyer.referred_by if buyer else None
    if not referrer_id or referrer_id == buyer_id:
        return None
    if isinstance(order_total, bool) or not isinstance(order_total, (int, float)) or not math.isfinite(order_total):
        raise InvalidAmountError("Order total must be a finite number")
    commission = round(order_total * get_settings().affiliate_commission_rate, 2)
    if commission <= 0:
        return None

    result = await credit(
        referrer_id,
        commission,
        "affiliate",
        metadata={"buyer_id": buyer_id, "admin_id": admin.admin_id},
        order_id=order_id,
        idempotency_key=f"affiliate:{order_id}",
    )
    if result.replayed:
        return result
    await notify_if_redeemable(referrer_id, result)
    await log_admin_action(
        admin.admin_id,
        "affiliate_reward",
        "order",
        order_id,
        {"referrer_id": referrer_id, "commission": commission},
    )
    return result
