import math
from datetime import datetime
from uuid import uuid4

from beanie import Document
from pydantic import Field


class Product(Document):
    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str = ""
    price: float | None = None
    selling_price: float | None = None
    original_price: float | None = None
    created_by: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "products"

    @property
    def effective_selling_price(self) -> float:
        """selling_price, else price, else 0; non-finite values count as 0."""
        value = self.selling_price if self.selling_price is not None else self.price
        if value is None or not math.isfinite(value):
            return 0
        return value
