from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import Field


class AdminLog(Document):
    admin_id: str
    action: str
    target_type: str
    target_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "admin_logs"
        indexes = [
            [("admin_id", 1), ("created_at", -1)],
            [("target_type", 1), ("target_id", 1)],
        ]
