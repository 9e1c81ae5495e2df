"""Market ledger - create, bet, resolve, claim with per-market serialization.

The ledger owns the authoritative market and bet maps for its process. Every
mutation builds the new records as copies, encodes them, commits them to the
account store in a single ``write`` and only then swaps them into memory. A
failed, timed-out or cancelled write drops the touched records from memory so
they are reloaded from the store on next use.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Iterable

import structlog
from pydantic import ValidationError

from predledger.accounts.address import AddressDeriver, default_deriver
from predledger.accounts.bet import decode_bet, encode_bet
from predledger.accounts.layout import AccountKind
from predledger.accounts.market import decode_market, encode_market
from predledger.errors import (
    BetAlreadyClaimed,
    ConflictingPrediction,
    InvalidAmount,
    InvalidInput,
    InvalidSchedule,
    InvalidText,
    LedgerUnavailable,
    LosingBet,
    MarketAlreadyExists,
    MarketAlreadyResolved,
    MarketNotActive,
    MarketNotResolved,
    MarketStillOpen,
    NotFound,
    OutcomeNotConfirmed,
    UnauthorizedResolver,
)
from predledger.models import (
    Bet,
    BetReceipt,
    CategoryTag,
    ClaimResult,
    Market,
    MarketStats,
    MarketStatus,
    OracleLink,
    Position,
)
from predledger.models.market import DESCRIPTION_MAX_LEN, QUESTION_MAX_LEN
from predledger.models.types import U64_MAX
from predledger.oracle.reader import OracleReader
from predledger.pricing.engine import payout, position_value
from predledger.storage.base import AccountStore

log = structlog.get_logger(__name__)

DEFAULT_RPC_TIMEOUT_SEC = 5.0


def _require_address(value: str, field: str) -> str:
    value = (value or "").strip().lower()
    try:
        raw = bytes.fromhex(value)
    except ValueError:
        raw = b""
    if len(raw) != 32:
        raise InvalidInput(f"{field} must be a 32-byte hex address")
    return value


def _require_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"amount must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"amount must be positive, got {amount}")
    if amount > U64_MAX:
        raise InvalidAmount("amount exceeds u64 range")
    return amount


class MarketLedger:
    """Authoritative market/bet state over an AccountStore."""

    def __init__(
        self,
        store: AccountStore,
        deriver: AddressDeriver | None = None,
        clock: Callable[[], int] | None = None,
        rpc_timeout: float | None = DEFAULT_RPC_TIMEOUT_SEC,
        allow_early_resolution: bool = False,
        oracle: OracleReader | None = None,
        require_verified_oracle: bool = True,
    ) -> None:
        self.store = store
        self.deriver = deriver or default_deriver
        self.clock = clock or (lambda: int(time.time()))
        self.rpc_timeout = rpc_timeout
        self.allow_early_resolution = allow_early_resolution
        self.oracle = oracle
        self.require_verified_oracle = require_verified_oracle
        self._markets: dict[str, Market] = {}
        self._bets: dict[str, Bet] = {}
        self._positions: dict[tuple[str, str], Position] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # --- plumbing ---
    def _lock_for(self, market: str) -> asyncio.Lock:
        lock = self._locks.get(market)
        if lock is None:
            lock = self._locks[market] = asyncio.Lock()
        return lock

    async def _call(self, op: str, awaitable: Awaitable[Any], timeout: float | None) -> Any:
        limit = self.rpc_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(awaitable, timeout=limit)
        except asyncio.TimeoutError:
            log.warning("ledger_store_timeout", op=op, timeout=limit)
            raise LedgerUnavailable(f"{op} timed out after {limit}s") from None
        except OSError as e:
            log.warning("ledger_store_error", op=op, error=str(e))
            raise LedgerUnavailable(f"{op} failed: {e}") from e

    def _forget(self, addresses: Iterable[str]) -> None:
        for address in addresses:
            self._markets.pop(address, None)
            self._bets.pop(address, None)

    async def _commit(self, op: str, entries: dict[str, bytes], timeout: float | None) -> None:
        try:
            await self._call(op, self.store.write(entries), timeout)
        except (LedgerUnavailable, asyncio.CancelledError):
            # The write may still have landed; reload these accounts from the store next time.
            self._forget(entries)
            raise

    def status(self, market: Market) -> MarketStatus:
        """Lifecycle state right now (ENDED is never stored)."""
        return market.status_at(self.clock())

    def bet_address(self, market: str, bettor: str) -> str:
        address, _ = self.deriver.bet_address(
            _require_address(market, "market"), _require_address(bettor, "bettor")
        )
        return address

    # --- reads ---
    async def get_market(self, market: str, timeout: float | None = None) -> Market:
        market = _require_address(market, "market")
        cached = self._markets.get(market)
        if cached is not None:
            return cached
        data = await self._call("get_market", self.store.get(market), timeout)
        if data is None:
            raise NotFound(f"market {market} not found")
        return self._markets.setdefault(market, decode_market(data, market))

    async def _find_bet(self, bet: str, timeout: float | None) -> Bet | None:
        cached = self._bets.get(bet)
        if cached is not None:
            return cached
        data = await self._call("get_bet", self.store.get(bet), timeout)
        if data is None:
            return None
        return self._bets.setdefault(bet, decode_bet(data, bet))

    async def get_bet(self, bet: str, timeout: float | None = None) -> Bet:
        record = await self._find_bet(_require_address(bet, "bet"), timeout)
        if record is None:
            raise NotFound(f"bet {bet} not found")
        return record

    async def sync(self, timeout: float | None = None) -> None:
        """Load every market and bet account from the store that is not already in memory."""
        markets = await self._call("scan_markets", self.store.scan(AccountKind.MARKET.value), timeout)
        bets = await self._call("scan_bets", self.store.scan(AccountKind.BET.value), timeout)
        for address, data in markets:
            if address not in self._markets:
                self._markets[address] = decode_market(data, address)
        for address, data in bets:
            if address not in self._bets:
                self._bets[address] = decode_bet(data, address)

    async def list_markets(self, status: MarketStatus | None = None, timeout: float | None = None) -> list[Market]:
        """All markets, newest first, optionally filtered by current status."""
        await self.sync(timeout)
        markets = sorted(self._markets.values(), key=lambda m: (m.created_at, m.address), reverse=True)
        if status is not None:
            markets = [m for m in markets if self.status(m) is status]
        return markets

    async def stats(self, timeout: float | None = None) -> MarketStats:
        await self.sync(timeout)
        stats = MarketStats(total_markets=len(self._markets))
        for m in self._markets.values():
            status = self.status(m)
            if status is MarketStatus.ACTIVE:
                stats.active_markets += 1
            elif status is MarketStatus.ENDED:
                stats.ended_markets += 1
            else:
                stats.resolved_markets += 1
            stats.total_volume += m.total_pool
        stats.total_bettors = len({b.bettor for b in self._bets.values()})
        return stats

    # --- positions ---
    def _position_from(self, market: Market, user: str, bet: Bet | None) -> Position:
        yes_amount = bet.amount if bet is not None and bet.prediction else 0
        no_amount = bet.amount if bet is not None and not bet.prediction else 0
        invested = yes_amount + no_amount
        value = position_value(
            yes_amount, no_amount, market.total_yes_amount, market.total_no_amount, market.outcome
        )
        position = Position(
            market=market.address,
            user=user,
            yes_amount=yes_amount,
            no_amount=no_amount,
            total_invested=invested,
            current_value=value,
            unrealized_pnl=value - invested,
            claimed=bet is not None and bet.claimed,
        )
        if bet is not None:
            self._positions[(user, market.address)] = position
        return position

    def _refresh_market_positions(self, market: Market) -> list[Position]:
        return [
            self._position_from(market, bet.bettor, bet) for bet in self._bets.values() if bet.market == market.address
        ]

    async def get_position(self, market: str, user: str, timeout: float | None = None) -> Position:
        current = await self.get_market(market, timeout)
        user = _require_address(user, "user")
        bet = await self._find_bet(self.bet_address(current.address, user), timeout)
        return self._position_from(current, user, bet)

    async def positions_for_market(self, market: str, timeout: float | None = None) -> list[Position]:
        """Positions of every bettor on a market, including accounts written by other processes."""
        current = await self.get_market(market, timeout)
        await self.sync(timeout)
        return self._refresh_market_positions(current)

    async def positions_for_user(self, user: str, timeout: float | None = None) -> list[Position]:
        """All of a user's positions across markets, newest market first."""
        user = _require_address(user, "user")
        await self.sync(timeout)
        for bet in self._bets.values():
            market = self._markets.get(bet.market)
            if bet.bettor == user and market is not None:
                self._position_from(market, user, bet)
        positions = [p for (u, m), p in self._positions.items() if u == user and m in self._markets]
        return sorted(positions, key=lambda p: (self._markets[p.market].created_at, p.market), reverse=True)

    # --- commands ---
    async def create_market(
        self,
        creator: str,
        question: str,
        description: str,
        end_time: int,
        resolution_time: int,
        *,
        category: str | None = None,
        oracle_event_id: str | None = None,
        timeout: float | None = None,
    ) -> Market:
        """Create a market with empty pools at the address derived from (creator, question)."""
        creator = _require_address(creator, "creator")
        question = (question or "").strip()
        description = description or ""
        if not question:
            raise InvalidText("question must not be empty")
        if len(question) > QUESTION_MAX_LEN:
            raise InvalidText(f"question longer than {QUESTION_MAX_LEN} characters")
        if len(description) > DESCRIPTION_MAX_LEN:
            raise InvalidText(f"description longer than {DESCRIPTION_MAX_LEN} characters")
        now = self.clock()
        if end_time <= now:
            raise InvalidSchedule(f"end_time {end_time} is not after now ({now})")
        if resolution_time < end_time:
            raise InvalidSchedule("resolution_time must not be before end_time")
        if resolution_time > U64_MAX:
            raise InvalidSchedule("resolution_time exceeds u64 range")

        address, nonce = self.deriver.market_address(creator, question)
        try:
            metadata: list[Any] = []
            if category:
                metadata.append(CategoryTag(category=category))
            if oracle_event_id:
                metadata.append(OracleLink(event_id=oracle_event_id))
            market = Market(
                address=address,
                creator=creator,
                question=question,
                description=description,
                end_time=end_time,
                resolution_time=resolution_time,
                created_at=now,
                nonce=nonce,
                metadata=metadata,
            )
        except ValidationError as e:
            raise InvalidInput(f"invalid market: {e.errors()[0].get('msg')}") from None
        data = encode_market(market)

        async with self._lock_for(address):
            if address in self._markets:
                raise MarketAlreadyExists(f"market {address} already exists")
            existing = await self._call("get_market", self.store.get(address), timeout)
            if existing is not None:
                raise MarketAlreadyExists(f"market {address} already exists")
            await self._commit("create_market", {address: data}, timeout)
            self._markets[address] = market
        log.info("market_created", market=address, creator=creator, end_time=end_time, nonce=nonce)
        return market

    async def place_bet(
        self,
        market: str,
        bettor: str,
        amount: int,
        prediction: bool,
        *,
        timeout: float | None = None,
    ) -> BetReceipt:
        """Stake on one side of an active market; repeat bets on the same side top up."""
        amount = _require_amount(amount)
        market = _require_address(market, "market")
        bettor = _require_address(bettor, "bettor")
        bet_address, nonce = self.deriver.bet_address(market, bettor)

        async with self._lock_for(market):
            current = await self.get_market(market, timeout)
            status = self.status(current)
            if status is not MarketStatus.ACTIVE:
                raise MarketNotActive(f"market {market} is {status.value}")
            existing = await self._find_bet(bet_address, timeout)
            if existing is not None and existing.prediction != prediction:
                raise ConflictingPrediction(
                    f"bettor already holds a {'yes' if existing.prediction else 'no'} bet on {market}"
                )

            total_yes = current.total_yes_amount + (amount if prediction else 0)
            total_no = current.total_no_amount + (0 if prediction else amount)
            stake = amount + (existing.amount if existing is not None else 0)
            if max(total_yes, total_no, stake) > U64_MAX:
                raise InvalidAmount("pool total would exceed u64 range")

            updated = current.model_copy(update={"total_yes_amount": total_yes, "total_no_amount": total_no})
            if existing is not None:
                bet = existing.model_copy(update={"amount": stake})
            else:
                bet = Bet(
                    address=bet_address,
                    market=market,
                    bettor=bettor,
                    amount=stake,
                    prediction=prediction,
                    created_at=self.clock(),
                    nonce=nonce,
                )
            entries = {market: encode_market(updated), bet_address: encode_bet(bet)}
            await self._commit("place_bet", entries, timeout)

            self._markets[market] = updated
            self._bets[bet_address] = bet
            position = self._position_from(updated, bettor, bet)
        log.info(
            "bet_placed",
            market=market,
            bettor=bettor,
            amount=amount,
            prediction=prediction,
            total_yes=total_yes,
            total_no=total_no,
        )
        return BetReceipt(market=updated, bet=bet, position=position)

    async def _confirm_with_oracle(self, market: Market, outcome: bool) -> None:
        event_id = market.oracle_event_id
        if event_id is None or self.oracle is None:
            return
        try:
            assertion = await self.oracle.get_oracle_assertion(event_id)
        except NotFound:
            raise OutcomeNotConfirmed(f"no oracle assertion for event {event_id}") from None
        if assertion.outcome is None:
            raise OutcomeNotConfirmed(f"oracle has not asserted an outcome for {event_id}")
        if self.require_verified_oracle and not assertion.verified:
            raise OutcomeNotConfirmed(f"oracle assertion for {event_id} is not verified")
        if assertion.outcome not in (0, 1) or bool(assertion.outcome) != outcome:
            raise OutcomeNotConfirmed(
                f"oracle asserted {assertion.outcome} for {event_id}, resolver asserted {int(outcome)}"
            )

    async def resolve_market(
        self,
        market: str,
        resolver: str,
        outcome: bool,
        *,
        timeout: float | None = None,
    ) -> Market:
        """Set the outcome once and freeze the pools. Creator only."""
        market = _require_address(market, "market")
        resolver = _require_address(resolver, "resolver")
        async with self._lock_for(market):
            current = await self.get_market(market, timeout)
            if resolver != current.creator:
                raise UnauthorizedResolver(f"{resolver} is not the creator of {market}")
            if current.resolved:
                raise MarketAlreadyResolved(f"market {market} is already resolved")
            if self.clock() < current.end_time and not self.allow_early_resolution:
                raise MarketStillOpen(f"market {market} ends at {current.end_time}")
            await self._confirm_with_oracle(current, outcome)

            resolved = current.model_copy(update={"resolved": True, "outcome": outcome})
            await self._commit("resolve_market", {market: encode_market(resolved)}, timeout)
            self._markets[market] = resolved
            self._refresh_market_positions(resolved)
        log.info(
            "market_resolved",
            market=market,
            outcome=outcome,
            total_yes=resolved.total_yes_amount,
            total_no=resolved.total_no_amount,
        )
        return resolved

    async def claim_winnings(self, market: str, bet: str, *, timeout: float | None = None) -> ClaimResult:
        """Authorize a winning bet's payout and mark it claimed. The transfer is external."""
        market = _require_address(market, "market")
        bet = _require_address(bet, "bet")
        async with self._lock_for(market):
            current = await self.get_market(market, timeout)
            record = await self.get_bet(bet, timeout)
            if record.market != market:
                raise NotFound(f"bet {bet} does not belong to market {market}")
            if not current.resolved:
                raise MarketNotResolved(f"market {market} is not resolved")
            if record.claimed:
                raise BetAlreadyClaimed(f"bet {bet} already claimed")
            if record.prediction != current.outcome:
                raise LosingBet(f"bet {bet} predicted the losing side")

            amount = payout(record.amount, record.prediction, current.total_yes_amount, current.total_no_amount)
            claimed = record.model_copy(update={"claimed": True})
            await self._commit("claim_winnings", {bet: encode_bet(claimed)}, timeout)
            self._bets[bet] = claimed
            self._position_from(current, claimed.bettor, claimed)
        log.info("winnings_claimed", market=market, bet=bet, bettor=claimed.bettor, payout=amount)
        return ClaimResult(bet=claimed, payout=amount)


def create_ledger(settings: Any, store: AccountStore, clock: Callable[[], int] | None = None) -> MarketLedger:
    """Build a ledger (with oracle reader) from Settings."""
    deriver = AddressDeriver(settings.program_id, settings.max_nonce_attempts)
    oracle = OracleReader(
        store,
        deriver=deriver,
        cache_ttl=settings.oracle_cache_ttl_sec,
        timeout=settings.rpc_timeout_sec,
    )
    return MarketLedger(
        store,
        deriver=deriver,
        clock=clock,
        rpc_timeout=settings.rpc_timeout_sec,
        allow_early_resolution=settings.allow_early_resolution,
        oracle=oracle,
        require_verified_oracle=settings.oracle_require_verified,
    )
