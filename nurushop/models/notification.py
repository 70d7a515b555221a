from datetime import datetime
from typing import Literal

from beanie import Document
from pydantic import Field


class Notification(Document):
    recipient_type: Literal["admin", "user"]
    recipient_id: str
    type: str  # wallet, review_prompt, ...
    title: str
    body: str
    related_id: str | None = None
    read_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "notifications"
        indexes = [
            [("recipient_type", 1), ("recipient_id", 1), ("created_at", -1)],
        ]
