"""
Stock Adjustment Service

The only writer of stock. One accepted adjustment =
one appended movement + one cached-stock update, committed together.

SAFE ADJUSTMENT FLOW:
1. Validate delta and movement type (no I/O)
2. Take the in-process lock for the ledger key (same product/variant
   serializes, different keys run concurrently)
3. Open a transaction; replay idempotency key if one was supplied
4. Row-lock the stock holder (FOR UPDATE) and read current stock
5. Reject if the result would go negative, unless it is a correction
6. Append the movement (monotonic created_at, next sequence)
7. Write the new stock (version-checked) and commit

A version mismatch or a unique-constraint race from another process rolls the
transaction back and the attempt is retried with fresh state, up to
STOCK_ADJUST_MAX_RETRIES, then ConcurrencyConflict is raised. Every other
error propagates unchanged and leaves nothing behind.
"""
import asyncio
import logging
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from inventory_ledger.core.audit_log import (
    ACTION_STOCK_ADJUST,
    ACTION_STOCK_ADJUST_REPLAY,
    log_stock_action,
)
from inventory_ledger.core.clock import Clock, SystemClock, as_utc
from inventory_ledger.core.config import Settings, settings as default_settings
from inventory_ledger.core.database import AsyncSessionLocal
from inventory_ledger.core.exceptions import (
    ConcurrencyConflict,
    IdempotencyKeyMismatch,
    InsufficientStock,
    InvalidDelta,
    InvalidMovementType,
    LedgerError,
    StockOutOfRange,
)
from inventory_ledger.core.locks import KeyedLock, LockTimeout
from inventory_ledger.models import STOCK_MAX, STOCK_MIN, MovementType, StockMovement, ledger_key_for
from inventory_ledger.services.movement_log import MovementLog, MovementRecord
from inventory_ledger.services.stock_repository import StockRepository

logger = logging.getLogger(__name__)

# Shared by every service instance in the process
_ledger_locks = KeyedLock()


def validate_delta(delta) -> int:
    # bool is an int subclass; True is not a stock change
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidDelta(delta)
    if delta == 0 or not STOCK_MIN <= delta <= STOCK_MAX:
        raise InvalidDelta(delta)
    return delta


def validate_movement_type(movement_type: Union[MovementType, str]) -> MovementType:
    try:
        return MovementType(movement_type)
    except ValueError:
        raise InvalidMovementType(movement_type, allowed=MovementType.values())


class AdjustmentService:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        movement_log: Optional[MovementLog] = None,
        stock_repository: Optional[StockRepository] = None,
        clock: Optional[Clock] = None,
        locks: Optional[KeyedLock] = None,
        config: Optional[Settings] = None,
    ):
        self._session_factory = session_factory or AsyncSessionLocal
        self._config = config or default_settings
        self.movement_log = movement_log or MovementLog(self._session_factory, self._config)
        self.stock_repository = stock_repository or StockRepository(self._session_factory, self.movement_log)
        self._clock = clock or SystemClock()
        self._locks = locks if locks is not None else _ledger_locks

    async def apply_adjustment(
        self,
        product_id: str,
        delta: int,
        movement_type: Union[MovementType, str],
        notes: Optional[str] = None,
        actor_id: Optional[str] = None,
        variant_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> MovementRecord:
        """
        Apply one signed stock change and return the recorded movement.

        Raises:
            InvalidDelta: delta is zero, not an integer, or out of column range
            InvalidMovementType: unknown movement type
            ProductNotFound / VariantNotFound: unknown ledger
            InsufficientStock: non-correction change would go below zero
            StockOutOfRange: resulting stock would not fit the stock columns
            IdempotencyKeyMismatch: key already used for another adjustment
            ConcurrencyConflict: retry budget exhausted or lock wait timed out
        """
        try:
            delta = validate_delta(delta)
            mtype = validate_movement_type(movement_type)
            return await self._apply_serialized(
                product_id, variant_id, delta, mtype,
                notes, actor_id, reference_id, idempotency_key,
            )
        except LedgerError as e:
            logger.warning(
                f"Stock adjustment on {ledger_key_for(product_id, variant_id)} "
                f"rejected [{e.code}]: {e.message}"
            )
            log_stock_action(
                ACTION_STOCK_ADJUST,
                actor_id,
                product_id,
                variant_id=variant_id,
                details={
                    "delta": delta,
                    "type": getattr(movement_type, "value", movement_type),
                    "error": e.code,
                },
                success=False,
            )
            raise

    async def _apply_serialized(
        self,
        product_id: str,
        variant_id: Optional[str],
        delta: int,
        mtype: MovementType,
        notes: Optional[str],
        actor_id: Optional[str],
        reference_id: Optional[str],
        idempotency_key: Optional[str],
    ) -> MovementRecord:
        key = ledger_key_for(product_id, variant_id)
        max_attempts = self._config.STOCK_ADJUST_MAX_RETRIES

        try:
            async with self._locks.hold(key, timeout=self._config.STOCK_LOCK_TIMEOUT_SECONDS):
                attempt = 0
                while True:
                    attempt += 1
                    try:
                        return await self._apply_once(
                            product_id, variant_id, key, delta, mtype,
                            notes, actor_id, reference_id, idempotency_key,
                        )
                    except (StaleDataError, IntegrityError) as e:
                        if attempt >= max_attempts:
                            logger.error(
                                f"Stock adjustment on {key} gave up after {attempt} attempts: "
                                f"{type(e).__name__}"
                            )
                            raise ConcurrencyConflict(
                                product_id, attempt, variant_id=variant_id, reason=type(e).__name__
                            ) from e
                        logger.warning(
                            f"Concurrent write on {key} ({type(e).__name__}), "
                            f"retrying ({attempt}/{max_attempts})"
                        )
                        await asyncio.sleep(self._config.STOCK_ADJUST_RETRY_BACKOFF_SECONDS * attempt)
        except LockTimeout as e:
            raise ConcurrencyConflict(product_id, 0, variant_id=variant_id, reason="lock_timeout") from e

    async def _apply_once(
        self,
        product_id: str,
        variant_id: Optional[str],
        key: str,
        delta: int,
        mtype: MovementType,
        notes: Optional[str],
        actor_id: Optional[str],
        reference_id: Optional[str],
        idempotency_key: Optional[str],
    ) -> MovementRecord:
        async with self._session_factory() as db:
            async with db.begin():
                if idempotency_key:
                    existing = await self.movement_log.find_by_idempotency_key(db, idempotency_key)
                    if existing is not None:
                        return self._replay(existing, product_id, variant_id, delta, mtype, actor_id)

                product, variant = await self.stock_repository.lock_for_update(db, product_id, variant_id)
                holder = variant or product
                previous_stock = holder.stock
                candidate = previous_stock + delta

                if candidate < 0 and mtype is not MovementType.CORRECTION:
                    raise InsufficientStock(product_id, previous_stock, delta, variant_id=variant_id)
                if not STOCK_MIN <= candidate <= STOCK_MAX:
                    raise StockOutOfRange(
                        product_id, previous_stock, delta, STOCK_MIN, STOCK_MAX, variant_id=variant_id
                    )

                last = await self.movement_log.last_for_ledger(db, key)
                created_at = self._clock.now()
                if last is not None and as_utc(last.created_at) > created_at:
                    created_at = as_utc(last.created_at)

                record = await self.movement_log.record(db, StockMovement(
                    product_id=product_id,
                    variant_id=variant_id,
                    ledger_key=key,
                    sequence=(last.sequence + 1) if last is not None else 1,
                    type=mtype.value,
                    change_amount=delta,
                    previous_stock=previous_stock,
                    new_stock=candidate,
                    notes=notes,
                    reference_id=reference_id,
                    idempotency_key=idempotency_key,
                    creator_id=actor_id,
                    created_at=created_at,
                ))
                await self.stock_repository.set_stock(db, holder, candidate)

        logger.info(
            f"Stock adjusted for {key}: {previous_stock} -> {candidate} "
            f"({mtype.value}: {delta:+d}) by {actor_id or 'system'}"
        )
        log_stock_action(
            ACTION_STOCK_ADJUST,
            actor_id,
            product_id,
            variant_id=variant_id,
            details={
                "movement_id": record.id,
                "type": mtype.value,
                "delta": delta,
                "previous_stock": previous_stock,
                "new_stock": candidate,
                "reference_id": reference_id,
                "idempotency_key": idempotency_key,
            },
        )
        return record

    def _replay(
        self,
        existing: StockMovement,
        product_id: str,
        variant_id: Optional[str],
        delta: int,
        mtype: MovementType,
        actor_id: Optional[str],
    ) -> MovementRecord:
        same = (
            existing.product_id == product_id
            and existing.variant_id == variant_id
            and existing.change_amount == delta
            and existing.type == mtype.value
        )
        if not same:
            raise IdempotencyKeyMismatch(existing.idempotency_key, existing.id)

        logger.info(f"Replayed idempotent adjustment {existing.idempotency_key} -> movement {existing.id}")
        log_stock_action(
            ACTION_STOCK_ADJUST_REPLAY,
            actor_id,
            product_id,
            variant_id=variant_id,
            details={"movement_id": existing.id, "idempotency_key": existing.idempotency_key},
        )
        return MovementRecord.from_model(existing)
