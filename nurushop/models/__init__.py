from nurushop.models.admin_log import AdminLog
from nurushop.models.admin_user import AdminRole, AdminUser
from nurushop.models.notification import Notification
from nurushop.models.product import Product
from nurushop.models.user import User
from nurushop.models.wallet_redemption import WalletRedemption
from nurushop.models.wallet_transaction import WalletTransaction

__all__ = [
    "AdminLog",
    "AdminRole",
    "AdminUser",
    "Notification",
    "Product",
    "User",
    "WalletRedemption",
    "WalletTransaction",
]
