"""Oracle reader."""

from predledger.oracle.reader import OracleReader

__all__ = ["OracleReader"]
