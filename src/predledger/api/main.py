"""FastAPI backend exposing market views and ledger commands."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from predledger.api.schemas import (
    BetReceiptResponse,
    ClaimResponse,
    CreateMarketRequest,
    ErrorResponse,
    HealthResponse,
    MarketsListResponse,
    MarketView,
    PlaceBetRequest,
    QuoteResponse,
    ResolveMarketRequest,
)
from predledger.config import configure_logging, get_settings
from predledger.errors import (
    CodecError,
    InvalidInput,
    LedgerError,
    NotFound,
    StateConflict,
    TransientError,
    UnauthorizedResolver,
)
from predledger.ledger.engine import MarketLedger, create_ledger
from predledger.models import MarketStats, MarketStatus, Position
from predledger.pricing.engine import quote
from predledger.storage.accounts import DuckDBAccountStore

# Set by run_api() so the module-level app picks the right profile.
_config_profile: str | None = None

# Checked in order; first match wins.
_STATUS_BY_ERROR: list[tuple[type[LedgerError], int]] = [
    (UnauthorizedResolver, 403),
    (NotFound, 404),
    (InvalidInput, 422),
    (StateConflict, 409),
    (TransientError, 503),
    (CodecError, 500),
]

_ERROR_RESPONSES = {
    403: {"description": "Resolver is not the market creator", "model": ErrorResponse},
    404: {"description": "Account not found", "model": ErrorResponse},
    409: {"description": "State conflict", "model": ErrorResponse},
    422: {"description": "Invalid input", "model": ErrorResponse},
    503: {"description": "Ledger unavailable", "model": ErrorResponse},
}


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code},
    )


def status_for_error(exc: LedgerError) -> int:
    for cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status_code
    return 500


async def _ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    return _error_json(exc.code, exc.message, status_for_error(exc))


def _ledger(request: Request) -> MarketLedger:
    return request.app.state.ledger


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get("/markets", response_model=MarketsListResponse)
async def markets_list(
    request: Request,
    status: MarketStatus | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> MarketsListResponse:
    """List markets, newest first, with optional status filter and limit/offset."""
    ledger = _ledger(request)
    all_markets = await ledger.list_markets(status=status)
    page = all_markets[offset : offset + limit]
    return MarketsListResponse(
        markets=[MarketView.from_market(m, ledger.status(m)) for m in page],
        total=len(all_markets),
    )


@router.post("/markets", response_model=MarketView, status_code=201, responses=_ERROR_RESPONSES)
async def market_create(request: Request, body: CreateMarketRequest) -> MarketView:
    ledger = _ledger(request)
    market = await ledger.create_market(
        body.creator,
        body.question,
        body.description,
        body.end_time,
        body.resolution_time,
        category=body.category,
        oracle_event_id=body.oracle_event_id,
    )
    return MarketView.from_market(market, ledger.status(market))


@router.get("/markets/{address}", response_model=MarketView, responses=_ERROR_RESPONSES)
async def market_detail(request: Request, address: str) -> MarketView:
    ledger = _ledger(request)
    market = await ledger.get_market(address)
    return MarketView.from_market(market, ledger.status(market))


@router.get("/markets/{address}/quote", response_model=QuoteResponse, responses=_ERROR_RESPONSES)
async def market_quote(
    request: Request,
    address: str,
    amount: int = Query(..., gt=0),
    prediction: bool = Query(...),
) -> QuoteResponse:
    """Potential payout of a new stake at the current pools."""
    market = await _ledger(request).get_market(address)
    potential = quote(amount, prediction, market.total_yes_amount, market.total_no_amount)
    return QuoteResponse(market=market.address, amount=amount, prediction=prediction, potential_payout=potential)


@router.post("/markets/{address}/bets", response_model=BetReceiptResponse, responses=_ERROR_RESPONSES)
async def market_place_bet(request: Request, address: str, body: PlaceBetRequest) -> BetReceiptResponse:
    ledger = _ledger(request)
    receipt = await ledger.place_bet(address, body.bettor, body.amount, body.prediction)
    return BetReceiptResponse(
        market=MarketView.from_market(receipt.market, ledger.status(receipt.market)),
        bet=receipt.bet,
        position=receipt.position,
    )


@router.post("/markets/{address}/resolve", response_model=MarketView, responses=_ERROR_RESPONSES)
async def market_resolve(request: Request, address: str, body: ResolveMarketRequest) -> MarketView:
    ledger = _ledger(request)
    market = await ledger.resolve_market(address, body.resolver, body.outcome)
    return MarketView.from_market(market, ledger.status(market))


@router.post("/markets/{address}/bets/{bet}/claim", response_model=ClaimResponse, responses=_ERROR_RESPONSES)
async def bet_claim(request: Request, address: str, bet: str) -> ClaimResponse:
    result = await _ledger(request).claim_winnings(address, bet)
    return ClaimResponse(bet=result.bet, payout=result.payout)


@router.get("/markets/{address}/positions/{user}", response_model=Position, responses=_ERROR_RESPONSES)
async def market_position(request: Request, address: str, user: str) -> Position:
    return await _ledger(request).get_position(address, user)


@router.get("/markets/{address}/positions", response_model=list[Position], responses=_ERROR_RESPONSES)
async def market_positions(request: Request, address: str) -> list[Position]:
    return await _ledger(request).positions_for_market(address)


@router.get("/users/{user}/positions", response_model=list[Position], responses=_ERROR_RESPONSES)
async def user_positions(request: Request, user: str) -> list[Position]:
    """Every position the user holds, newest market first."""
    return await _ledger(request).positions_for_user(user)


@router.get("/stats", response_model=MarketStats)
async def stats(request: Request) -> MarketStats:
    return await _ledger(request).stats()


def create_app(ledger: MarketLedger | None = None, profile: str | None = None) -> FastAPI:
    """Build the API. Without a ledger, one is created from settings over DuckDB at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = None
        if app.state.ledger is None:
            settings = get_settings(profile)
            configure_logging(settings)
            store = DuckDBAccountStore(settings.db_path)
            app.state.ledger = create_ledger(settings, store)
        yield
        if store is not None:
            store.close()

    app = FastAPI(title="PredLedger API", version="0.1.0", lifespan=lifespan)
    app.state.ledger = ledger
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.add_exception_handler(LedgerError, _ledger_error_handler)
    app.include_router(router)
    return app


def _app_factory() -> FastAPI:
    return create_app(profile=_config_profile)


def run_api(host: str = "127.0.0.1", port: int = 8000, profile: str | None = None) -> None:
    global _config_profile
    _config_profile = profile
    import uvicorn
    uvicorn.run("predledger.api.main:_app_factory", host=host, port=port, reload=False, factory=True)
