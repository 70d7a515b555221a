"""Admin action log for privileged wallet operations."""

from typing import Any

from nurushop.models.admin_log import AdminLog

ADMIN_ACTIONS = (
    "wallet_adjustment",
    "wallet_redeem_approved",
    "wallet_redeem_rejected",
    "affiliate_reward",
)


async def log_admin_action(
    admin_id: str,
    action: str,
    target_type: str,
    target_id: str,
    metadata: dict[str, Any] | None = None,
) -> AdminLog:
    """Append to admin_logs collection."""
    if action not in ADMIN_ACTIONS:
        raise ValueError(f"Unknown admin action: {action}")
    entry = AdminLog(
        admin_id=admin_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
    )
    await entry.insert()
    return entry
