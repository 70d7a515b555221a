"""Wallet ledger: credit/debit, non-negativity, reconciliation, concurrent debits."""

import asyncio
import math

import pytest

from nurushop.core.exceptions import InsufficientFundsError, InvalidAmountError
from nurushop.models.notification import Notification
from nurushop.models.user import User
from nurushop.models.wallet_transaction import WalletTransaction
from nurushop.services import wallet as wallet_service

pytestmark = pytest.mark.asyncio


async def test_get_balance_unknown_user_is_zero():
    assert await wallet_service.get_balance("nobody") == 0


async def test_credit_creates_user_and_records_transaction():
    result = await wallet_service.credit("new-user", 100, "adjustment", metadata={"reason": "welcome"})
    assert (result.before, result.after) == (0, 100)
    user = await User.get("new-user")
    assert user is not None
    assert user.wallet_balance == 100
    txs = await WalletTransaction.find(WalletTransaction.user_id == "new-user").to_list()
    assert len(txs) == 1
    assert txs[0].type == "credit"
    assert txs[0].source == "adjustment"
    assert txs[0].balance_after == 100
    assert txs[0].metadata == {"reason": "welcome"}


async def test_debit_records_redemption_reference(user_with_balance):
    await user_with_balance(200)
    result = await wallet_service.debit("user-1", 150, "redeem", redemption_id="r-1")
    assert (result.before, result.after) == (200, 50)
    assert result.transaction.redemption_id == "r-1"
    assert result.transaction.metadata["redemption_id"] == "r-1"


@pytest.mark.parametrize("amount", [0, -5, float("inf"), float("nan"), None, "10", True])
async def test_invalid_amount_rejected_before_any_write(amount):
    with pytest.raises(InvalidAmountError):
        await wallet_service.credit("user-x", amount, "adjustment")
    with pytest.raises(InvalidAmountError):
        await wallet_service.debit("user-x", amount, "adjustment")
    assert await User.get("user-x") is None
    assert await WalletTransaction.find_all().count() == 0


async def test_debit_beyond_balance_fails_without_mutation(user_with_balance):
    await user_with_balance(100)
    with pytest.raises(InsufficientFundsError):
        await wallet_service.debit("user-1", 101, "adjustment")
    assert await wallet_service.get_balance("user-1") == 100
    debits = await WalletTransaction.find(WalletTransaction.type == "debit").count()
    assert debits == 0


async def test_debit_unknown_user_is_insufficient():
    with pytest.raises(InsufficientFundsError):
        await wallet_service.debit("ghost", 1, "adjustment")


async def test_balance_never_negative_and_reconciles():
    ops = [
        ("credit", 120), ("debit", 50), ("debit", 100), ("credit", 30),
        ("debit", 100), ("debit", 1), ("credit", 500), ("debit", 499),
    ]
    for kind, amount in ops:
        try:
            if kind == "credit":
                await wallet_service.credit("u-seq", amount, "adjustment")
            else:
                await wallet_service.debit("u-seq", amount, "adjustment")
        except InsufficientFundsError:
            pass
        assert await wallet_service.get_balance("u-seq") >= 0

    report = await wallet_service.reconcile("u-seq")
    assert report["consistent"] is True
    assert math.isclose(report["balance"], report["ledger_total"])


async def test_concurrent_debits_only_one_wins(user_with_balance, interleaved):
    await user_with_balance(200)
    results = await asyncio.gather(
        wallet_service.debit("user-1", 150, "adjustment"),
        wallet_service.debit("user-1", 150, "adjustment"),
        return_exceptions=True,
    )
    wins = [r for r in results if not isinstance(r, Exception)]
    losses = [r for r in results if isinstance(r, InsufficientFundsError)]
    assert len(wins) == 1
    assert len(losses) == 1
    assert await wallet_service.get_balance("user-1") == 50
    debits = await WalletTransaction.find(
        WalletTransaction.user_id == "user-1", WalletTransaction.type == "debit"
    ).count()
    assert debits == 1


async def test_interleaved_store_exposes_unguarded_read_then_write(user_with_balance, interleaved):
    await user_with_balance(200)
    collection = User.get_motor_collection()

    async def unguarded_debit(amount):
        doc = await collection.find_one({"_id": "user-1"})
        if doc["wallet_balance"] < amount:
            return False
        await collection.update_one({"_id": "user-1"}, {"$inc": {"wallet_balance": -amount}})
        return True

    assert await asyncio.gather(unguarded_debit(150), unguarded_debit(150)) == [True, True]
    doc = await collection.find_one({"_id": "user-1"})
    assert doc["wallet_balance"] == -100


async def test_many_concurrent_debits_never_overdraw(user_with_balance, interleaved):
    await user_with_balance(200)
    results = await asyncio.gather(
        *(wallet_service.debit("user-1", 50, "adjustment") for _ in range(6)),
        return_exceptions=True,
    )
    assert sum(1 for r in results if isinstance(r, InsufficientFundsError)) == 2
    assert await wallet_service.get_balance("user-1") == 0
    report = await wallet_service.reconcile("user-1")
    assert report["consistent"] is True


async def test_guard_lives_in_the_update_filter(user_with_balance):
    await user_with_balance(100)
    assert await wallet_service._increment_balance("user-1", -150) is None
    assert await wallet_service.get_balance("user-1") == 100
    updated = await wallet_service._increment_balance("user-1", -100)
    assert updated["wallet_balance"] == 0


async def test_idempotency_key_replays_without_double_apply():
    first = await wallet_service.credit("u-idem", 40, "affiliate", idempotency_key="affiliate:o-1")
    second = await wallet_service.credit("u-idem", 40, "affiliate", idempotency_key="affiliate:o-1")
    assert second.replayed is True
    assert second.transaction.id == first.transaction.id
    assert (second.before, second.after) == (0, 40)
    assert await wallet_service.get_balance("u-idem") == 40


async def test_simultaneous_same_key_credits_apply_once(interleaved):
    results = await asyncio.gather(
        wallet_service.credit("u-race", 40, "affiliate", idempotency_key="affiliate:o-9"),
        wallet_service.credit("u-race", 40, "affiliate", idempotency_key="affiliate:o-9"),
    )
    assert sorted(r.replayed for r in results) == [False, True]
    assert results[0].transaction.id == results[1].transaction.id
    assert await wallet_service.get_balance("u-race") == 40
    assert await WalletTransaction.find(WalletTransaction.user_id == "u-race").count() == 1


async def test_unkeyed_transactions_do_not_collide():
    for _ in range(3):
        await wallet_service.credit("u-nokey", 10, "adjustment")
    assert await WalletTransaction.find(WalletTransaction.user_id == "u-nokey").count() == 3


async def test_threshold_crossing_notifies_each_senior_once(senior_admin, second_senior_admin, sub_admin):
    await wallet_service.adjust_wallet(senior_admin, "u-th", 100, "credit")
    assert await Notification.find_all().count() == 0

    await wallet_service.adjust_wallet(senior_admin, "u-th", 100, "credit")  # 100 -> 200
    notes = await Notification.find_all().to_list()
    assert sorted(n.recipient_id for n in notes) == sorted([senior_admin.admin_id, second_senior_admin.admin_id])
    assert all(n.related_id == "u-th" and n.read_at is None for n in notes)

    await wallet_service.adjust_wallet(senior_admin, "u-th", 100, "credit")  # 200 -> 300
    assert await Notification.find_all().count() == 2


async def test_fanout_failure_does_not_undo_credit(senior_admin, monkeypatch):
    from nurushop.services import notifications

    async def boom(*args, **kwargs):
        raise RuntimeError("store down")

    monkeypatch.setattr(notifications, "notify_senior_admins", boom)
    result = await wallet_service.adjust_wallet(senior_admin, "u-bf", 200, "credit")
    assert result.after == 200
    assert await wallet_service.get_balance("u-bf") == 200


async def test_affiliate_commission_paid_once_per_order(senior_admin):
    await User(id="buyer", referred_by="referrer").insert()
    first = await wallet_service.award_affiliate_commission(senior_admin, "order-9", "buyer", None, 2500)
    assert first is not None
    assert first.transaction.amount == 25
    assert first.transaction.source == "affiliate"
    assert first.transaction.order_id == "order-9"

    again = await wallet_service.award_affiliate_commission(senior_admin, "order-9", "buyer", None, 2500)
    assert again.replayed is True
    assert await wallet_service.get_balance("referrer") == 25


async def test_affiliate_self_referral_pays_nothing(senior_admin):
    result = await wallet_service.award_affiliate_commission(senior_admin, "order-1", "same", "same", 1000)
    assert result is None
    assert await WalletTransaction.find_all().count() == 0
