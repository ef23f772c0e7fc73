"""Rate ledger service: current rate, audit history and rate updates per pair."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation

from rate_ledger.domain.conversion import ConversionResult, convert
from rate_ledger.domain.rates import CurrencyPair, RateRecord, parse_rate
from rate_ledger.exceptions import (
    ConstraintViolationError,
    StorageError,
    ValidationError,
)
from rate_ledger.logging_config import LogContext, get_logger
from rate_ledger.repositories.interfaces import RateStore
from rate_ledger.services.interfaces import PairArg, RateLedgerService

logger = get_logger(__name__)

IDENTITY_RATE = Decimal(1)
_TICK = timedelta(microseconds=1)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RateLedgerServiceImpl(RateLedgerService):
    """Keeps exactly one active record per pair on top of a RateStore.

    The service holds no locks of its own. Each write is one store
    transaction, and the store serializes transactions on the same pair.
    """

    def __init__(
        self,
        store: RateStore,
        default_pair: CurrencyPair,
        *,
        max_rate: Decimal | None = None,
        history_default_limit: int = 5,
        history_max_limit: int = 500,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._default_pair = default_pair
        self._max_rate = max_rate
        self._history_default_limit = history_default_limit
        self._history_max_limit = history_max_limit
        self._clock = clock

    @property
    def default_pair(self) -> CurrencyPair:
        return self._default_pair

    def _resolve_pair(self, pair: PairArg) -> CurrencyPair:
        if pair is None:
            return self._default_pair
        if isinstance(pair, CurrencyPair):
            return pair
        if isinstance(pair, str):
            return CurrencyPair.parse(pair)
        from_currency, to_currency = pair
        return CurrencyPair(from_currency, to_currency)

    def get_current(self, pair: PairArg = None) -> RateRecord | None:
        """Return the active record, or None when the pair was never set."""
        return self._store.query_active(self._resolve_pair(pair))

    def get_history(self, pair: PairArg = None, limit: int | None = None) -> list[RateRecord]:
        """Return the most recent records of the pair, newest first."""
        if limit is None:
            limit = self._history_default_limit
        if limit < 1:
            raise ValidationError(
                f"History limit must be at least 1, got {limit}",
                context={"limit": limit},
            )
        limit = min(limit, self._history_max_limit)
        return self._store.query_history(self._resolve_pair(pair), limit)

    def set_rate(self, pair: PairArg, rate: object, actor: str | None = None) -> RateRecord:
        """Make `rate` the current rate of the pair.

        Deactivating the previous record and inserting the new active one
        happen in one store transaction: readers see either the old record
        or the new one as active, never both and never neither.

        Raises:
            InvalidRateError: rate is not a finite positive number in range.
            InvalidPairError: pair is malformed or converts a currency to itself.
            StorageError: the transaction did not commit; nothing changed.
        """
        parsed = parse_rate(rate, self._max_rate)
        target = self._resolve_pair(pair)
        if actor is not None:
            actor = actor.strip() or None

        with LogContext(pair=target.key):
            try:
                with self._store.transaction(target) as tx:
                    now = self._clock()
                    latest = tx.latest_update(target)
                    # A new record must sort first even if the clock did not advance.
                    if latest is not None and now <= latest:
                        now = latest + _TICK
                    superseded = tx.deactivate(target, now)
                    record = tx.insert(
                        RateRecord(
                            pair=target,
                            rate=parsed,
                            is_active=True,
                            updated_by=actor,
                            created_at=now,
                            updated_at=now,
                        )
                    )
            except (StorageError, ConstraintViolationError) as e:
                logger.error(
                    "rate_set_failed",
                    rate=str(parsed),
                    actor=actor,
                    error_code=e.error_code,
                    reason=e.message,
                )
                raise

            logger.info(
                "rate_set",
                record_id=str(record.id),
                rate=str(record.rate),
                actor=actor,
                superseded=superseded,
            )
        return record

    def repair_invariant(self, pair: PairArg = None) -> bool:
        """Recompute which record of the pair is active; True if anything changed."""
        target = self._resolve_pair(pair)
        changed = self._store.normalize(target)
        if changed:
            logger.warning("rate_invariant_repaired", pair=target.key, rows_changed=changed)
        else:
            logger.debug("rate_invariant_intact", pair=target.key)
        return changed > 0

    def repair_all(self) -> int:
        """Repair every pair; return the number of rows whose flag changed."""
        changed = self._store.normalize_all()
        logger.info("rate_repair_completed", rows_changed=changed)
        return changed

    def list_current(self) -> list[RateRecord]:
        return self._store.list_active()

    def convert(
        self,
        amount: Decimal,
        pair: PairArg = None,
        round_up_to: Decimal | None = None,
    ) -> ConversionResult:
        """Convert with the pair's current rate, or 1 when no rate was ever set."""
        target = self._resolve_pair(pair)
        try:
            value = Decimal(str(amount))
        except InvalidOperation as e:
            raise ValidationError(
                f"Invalid amount '{amount}': must be a number",
                context={"amount": str(amount)},
            ) from e
        if not value.is_finite():
            raise ValidationError(
                f"Invalid amount '{amount}': must be finite",
                context={"amount": str(amount)},
            )

        current = self._store.query_active(target)
        rate = current.rate if current is not None else IDENTITY_RATE
        if current is None:
            logger.warning("conversion_rate_missing", pair=target.key)
        return ConversionResult(
            pair=target,
            amount=value,
            converted_amount=convert(value, rate, round_up_to=round_up_to),
            rate=rate,
            rate_is_default=current is None,
        )
