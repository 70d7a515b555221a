from datetime import datetime
from typing import Literal

from beanie import Document
from pydantic import Field

RedemptionStatus = Literal["pending", "approved", "rejected"]


class WalletRedemption(Document):
    user_id: str
    type: Literal["cash", "product"]
    amount: float  # frozen at request time
    phone: str | None = None
    bank_details: str | None = None
    product_id: str | None = None
    product_name: str | None = None
    status: RedemptionStatus = "pending"
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "wallet_redemptions"
        indexes = [
            [("status", 1), ("created_at", -1)],
            [("user_id", 1), ("created_at", -1)],
        ]
