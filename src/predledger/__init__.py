"""PredLedger - pari-mutuel binary prediction market ledger."""

__version__ = "0.1.0"
