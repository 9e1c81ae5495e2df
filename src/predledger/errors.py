"""Ledger error taxonomy.

Every error carries a stable snake_case ``code`` so the API and CLI layers can
report it without string matching. Four categories:

- ``InvalidInput``: rejected before any state change; fix the input and retry.
- ``StateConflict``: permanent for the record in question; do not retry.
- ``CodecError``: stored bytes are corrupt or from an unknown layout version.
- ``TransientError``: backend unavailable or timed out; re-read the affected
  records, then retry with backoff.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base for all errors surfaced by the ledger core."""

    code = "ledger_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


# --- Validation ---
class InvalidInput(LedgerError):
    """Invalid input."""

    code = "invalid_input"


class InvalidAmount(InvalidInput):
    """Amount must be a positive integer within the u64 range."""

    code = "invalid_amount"


class InvalidSchedule(InvalidInput):
    """End time must be in the future and not after the resolution time."""

    code = "invalid_schedule"


class InvalidText(InvalidInput):
    """Text field is empty or too long."""

    code = "invalid_text"


class OutcomeNotConfirmed(InvalidInput):
    """Linked oracle does not confirm the asserted outcome."""

    code = "outcome_not_confirmed"


# --- State conflicts ---
class StateConflict(LedgerError):
    """Operation conflicts with the current record state."""

    code = "state_conflict"


class MarketNotActive(StateConflict):
    """Market is not active."""

    code = "market_not_active"


class MarketStillOpen(MarketNotActive):
    """Market end time has not passed yet."""

    code = "market_still_open"


class MarketNotResolved(StateConflict):
    """Market has not been resolved."""

    code = "market_not_resolved"


class MarketAlreadyResolved(StateConflict):
    """Market has already been resolved."""

    code = "market_already_resolved"


class MarketAlreadyExists(StateConflict):
    """A market with the same creator and question prefix already exists."""

    code = "market_already_exists"


class UnauthorizedResolver(StateConflict):
    """Only the market creator may resolve the market."""

    code = "unauthorized_resolver"


class BetAlreadyClaimed(StateConflict):
    """Winnings already claimed."""

    code = "bet_already_claimed"


class LosingBet(StateConflict):
    """Bet did not predict the resolved outcome."""

    code = "losing_bet"


class ConflictingPrediction(StateConflict):
    """Bettor already holds a bet on the opposite side of this market."""

    code = "conflicting_prediction"


# --- Codec ---
class CodecError(LedgerError):
    """Account bytes could not be encoded or decoded."""

    code = "codec_error"


class MalformedAccount(CodecError):
    """Account bytes do not match the expected layout."""

    code = "malformed_account"


class UnknownDiscriminator(MalformedAccount):
    """Account discriminator does not match any known record kind."""

    code = "unknown_discriminator"


# --- Infrastructure ---
class TransientError(LedgerError):
    """Temporary infrastructure failure."""

    code = "transient_error"


class LedgerUnavailable(TransientError):
    """Ledger storage is unavailable or timed out."""

    code = "ledger_unavailable"


# --- Other ---
class NotFound(LedgerError):
    """Account not found."""

    code = "not_found"


class AddressSpaceExhausted(LedgerError):
    """No nonce in range produced a usable address."""

    code = "address_space_exhausted"
