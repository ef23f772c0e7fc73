"""API routes for Rate Ledger."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, status

from rate_ledger.api.schemas import (
    ConversionResponse,
    HealthResponse,
    RateRecordResponse,
    RateUpdateRequest,
    RepairResponse,
)
from rate_ledger.config import Settings
from rate_ledger.container import get_app_settings, get_ledger_service
from rate_ledger.domain.rates import resolve_pair
from rate_ledger.exceptions import (
    AuthenticationError,
    PermissionDeniedError,
    ValidationError,
)
from rate_ledger.logging_config import get_logger
from rate_ledger.services.interfaces import RateLedgerService

logger = get_logger(__name__)

health_router = APIRouter(tags=["health"])
currency_router = APIRouter(prefix="/currency", tags=["currency"])

LedgerDep = Annotated[RateLedgerService, Depends(get_ledger_service)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
FromQuery = Annotated[str | None, Query(alias="fromCurrency")]
ToQuery = Annotated[str | None, Query(alias="toCurrency")]


@dataclass(frozen=True)
class Actor:
    """Caller identity as forwarded by the upstream auth layer."""

    id: str
    role: str | None


def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> Actor:
    actor_id = (x_actor_id or "").strip()
    if not actor_id:
        raise AuthenticationError("Authentication required: missing X-Actor-Id header")
    role = (x_actor_role or "").strip().lower() or None
    return Actor(id=actor_id, role=role)


def require_rate_manager(
    actor: Annotated[Actor, Depends(get_actor)],
    settings: SettingsDep,
) -> Actor:
    """Allow only actors whose role may change rates."""
    allowed = {role.lower() for role in settings.rate_manager_roles}
    if actor.role not in allowed:
        logger.warning("rate_access_denied", actor=actor.id, role=actor.role)
        raise PermissionDeniedError("manage", "exchange rates")
    return actor


ManagerDep = Annotated[Actor, Depends(require_rate_manager)]


# Health endpoint
@health_router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")


# Currency endpoints
@currency_router.get("/current", response_model=RateRecordResponse)
def get_current_rate(
    service: LedgerDep,
    from_currency: FromQuery = None,
    to_currency: ToQuery = None,
) -> RateRecordResponse:
    """Get the current rate of a pair, or rate 1 when none was ever set."""
    pair = resolve_pair(service.default_pair, from_currency, to_currency)
    record = service.get_current(pair)
    if record is None:
        logger.warning("current_rate_missing", pair=pair.key)
        return RateRecordResponse.unset(pair)
    return RateRecordResponse.from_record(record)


@currency_router.get("/history", response_model=list[RateRecordResponse])
def get_rate_history(
    service: LedgerDep,
    from_currency: FromQuery = None,
    to_currency: ToQuery = None,
    limit: int | None = None,
) -> list[RateRecordResponse]:
    """List the most recent records of a pair, newest first."""
    pair = resolve_pair(service.default_pair, from_currency, to_currency)
    records = service.get_history(pair, limit)
    return [RateRecordResponse.from_record(r) for r in records]


@currency_router.post(
    "/update",
    response_model=RateRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
def update_rate(
    payload: RateUpdateRequest,
    service: LedgerDep,
    actor: ManagerDep,
) -> RateRecordResponse:
    """Record a new current rate for a pair."""
    pair = resolve_pair(service.default_pair, payload.from_currency, payload.to_currency)
    record = service.set_rate(pair, payload.rate, actor=actor.id)
    return RateRecordResponse.from_record(record)


@currency_router.get("/rates", response_model=list[RateRecordResponse])
def list_current_rates(service: LedgerDep) -> list[RateRecordResponse]:
    """List the current record of every pair that has one."""
    return [RateRecordResponse.from_record(r) for r in service.list_current()]


@currency_router.get("/convert", response_model=ConversionResponse)
def convert_amount(
    service: LedgerDep,
    amount: Decimal,
    from_currency: FromQuery = None,
    to_currency: ToQuery = None,
    round_up_to: Annotated[Decimal | None, Query(alias="roundUpTo")] = None,
) -> ConversionResponse:
    """Convert an amount with the pair's current rate."""
    pair = resolve_pair(service.default_pair, from_currency, to_currency)
    result = service.convert(amount, pair, round_up_to=round_up_to)
    return ConversionResponse.from_result(result, round_up_to=round_up_to)


@currency_router.post("/repair", response_model=RepairResponse)
def repair_rates(
    service: LedgerDep,
    actor: ManagerDep,
    from_currency: FromQuery = None,
    to_currency: ToQuery = None,
    all_pairs: Annotated[bool, Query(alias="all")] = False,
) -> RepairResponse:
    """Recompute the active record of one pair, or of every pair."""
    if all_pairs:
        if from_currency is not None or to_currency is not None:
            raise ValidationError("Pass either a currency pair or all=true, not both")
        rows = service.repair_all()
        logger.info("rate_repair_requested", actor=actor.id, scope="all", rows_changed=rows)
        return RepairResponse(corrected=rows > 0, rows_changed=rows)

    pair = resolve_pair(service.default_pair, from_currency, to_currency)
    corrected = service.repair_invariant(pair)
    logger.info("rate_repair_requested", actor=actor.id, scope=pair.key, corrected=corrected)
    return RepairResponse(corrected=corrected)
