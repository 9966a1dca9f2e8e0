"""
Audit trail for stock actions

The movement table is the durable record of accepted changes. This logger
also covers what never reaches the table: rejected adjustments, idempotent
replays and reconciliation results. Entries go to the "audit" logger with
the structured payload under ``extra["audit"]``.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from inventory_ledger.core.config import settings

audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)

ACTION_STOCK_ADJUST = "stock.adjust"
ACTION_STOCK_ADJUST_REPLAY = "stock.adjust.replay"
ACTION_STOCK_RECONCILE = "stock.reconcile"

# Detail keys containing these are dropped; idempotency_key is allowed through
REDACTED_KEY_PARTS = ("password", "secret", "token", "credential")


def _redact(details: dict) -> dict:
    return {
        name: value for name, value in details.items()
        if not any(part in name.lower() for part in REDACTED_KEY_PARTS)
    }


def log_stock_action(
    action: str,
    actor_id: Optional[str],
    product_id: str,
    variant_id: Optional[str] = None,
    details: Optional[dict] = None,
    success: bool = True,
) -> dict:
    """Write one audit entry and return the payload that was logged."""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "actor_id": actor_id,
        "product_id": product_id,
        "variant_id": variant_id,
        "success": success,
        "environment": settings.ENVIRONMENT,
    }
    if details:
        entry["details"] = _redact(details)

    ledger = f"{product_id}:{variant_id}" if variant_id else product_id
    outcome = "ok" if success else "rejected"
    log = audit_logger.info if success else audit_logger.warning
    log(f"AUDIT {action} {outcome}: ledger={ledger} actor={actor_id or 'system'}", extra={"audit": entry})
    return entry
