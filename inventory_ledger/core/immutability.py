"""
ORM-level immutability for stock movements

Movements are the audit record the current stock is derived from. Once a row
is inserted, the ORM refuses to UPDATE or DELETE it; corrections are recorded
as new movements instead.

Listeners are registered at import of inventory_ledger.services (and so by the
app and the CLI). Raw SQL bypasses them; the ledger never issues any.
"""
import logging

from sqlalchemy import event
from sqlalchemy.orm import Session

from inventory_ledger.core.exceptions import ImmutableMovementError
from inventory_ledger.models.stock_movement import StockMovement

logger = logging.getLogger(__name__)

_registered = False


def _refuse_update(mapper, connection, target):
    logger.error(f"Blocked UPDATE of stock movement {target.id}")
    raise ImmutableMovementError(target.id, "update")


def _refuse_delete_before_flush(session, flush_context, instances):
    # Mapper-level before_delete fires after the flush plan is fixed;
    # checking here aborts before anything is sent.
    for obj in list(session.deleted):
        if isinstance(obj, StockMovement):
            logger.error(f"Blocked DELETE of stock movement {obj.id}")
            raise ImmutableMovementError(obj.id, "delete")


def register_immutability_listeners() -> None:
    global _registered
    if _registered:
        return
    event.listen(StockMovement, "before_update", _refuse_update)
    event.listen(Session, "before_flush", _refuse_delete_before_flush)
    _registered = True

