from datetime import datetime
from typing import Any, Literal

from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, IndexModel


class WalletTransaction(Document):
    """Append-only ledger row; one per balance mutation."""

    user_id: str
    type: Literal["credit", "debit"]
    amount: float  # always positive; direction is in type
    balance_after: float
    source: str  # adjustment, redeem, affiliate
    metadata: dict[str, Any] = Field(default_factory=dict)
    redemption_id: str | None = None
    order_id: str | None = None
    idempotency_key: str | None = None
    status: str = "approved"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "wallet_transactions"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            # Unique only for keyed rows; unkeyed rows store null and must not collide.
            IndexModel(
                [("user_id", ASCENDING), ("idempotency_key", ASCENDING)],
                name="user_idempotency_key_unique",
                unique=True,
                partialFilterExpression={"idempotency_key": {"$type": "string"}},
            ),
            [("redemption_id", 1)],
        ]
