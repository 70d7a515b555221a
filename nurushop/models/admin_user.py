from datetime import datetime
from enum import Enum

from beanie import Document, Indexed
from pydantic import Field


class AdminRole(str, Enum):
    SUB = "sub"
    SENIOR = "senior"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]


_ROLE_RANK = {AdminRole.SUB: 0, AdminRole.SENIOR: 1}


class AdminUser(Document):
    email: Indexed(str, unique=True)
    name: str = ""
    role: AdminRole = AdminRole.SUB
    password_hash: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "admins"
        indexes = [[("role", 1)]]
