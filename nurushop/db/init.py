import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from nurushop.core.config import get_settings
from nurushop.models.admin_log import AdminLog
from nurushop.models.admin_user import AdminUser
from nurushop.models.notification import Notification
from nurushop.models.product import Product
from nurushop.models.user import User
from nurushop.models.wallet_redemption import WalletRedemption
from nurushop.models.wallet_transaction import WalletTransaction

DOCUMENT_MODELS = [
    User,
    Product,
    AdminUser,
    WalletTransaction,
    WalletRedemption,
    Notification,
    AdminLog,
]


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


def get_database() -> AsyncIOMotorDatabase:
    settings = get_settings()
    kwargs = {}
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
    return client[settings.mongodb_db_name]


async def init_db(database: AsyncIOMotorDatabase | None = None) -> None:
    """Bind document models; tests pass an in-memory database."""
    if database is None:
        database = get_database()
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
