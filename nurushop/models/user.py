from datetime import datetime
from uuid import uuid4

from beanie import Document
from pydantic import Field


class User(Document):
    """Shopper record keyed by the auth provider's uid.

    wallet_balance is owned by nurushop.services.wallet; nothing else writes it.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    email: str | None = None
    name: str = ""
    referred_by: str | None = None
    wallet_balance: float = 0
    wallet_updated_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
