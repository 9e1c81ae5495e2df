"""Fixed-layout binary primitives: discriminators, bounded reader, writer.

All integers are little-endian. Strings are a u32 byte length followed by raw
UTF-8, with no padding and no delimiter. Flag bytes are 0 or 1.
"""

from __future__ import annotations

import hashlib
import struct
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from predledger.errors import MalformedAccount, UnknownDiscriminator

DISCRIMINATOR_LEN = 8
PUBKEY_LEN = 32
U8_SIZE = 1
U32_SIZE = 4
U64_SIZE = 8
I32_SIZE = 4
F32_SIZE = 4

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_I32 = struct.Struct("<i")
_F32 = struct.Struct("<f")

M = TypeVar("M", bound=BaseModel)


def _discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode()).digest()[:DISCRIMINATOR_LEN]


class AccountKind(Enum):
    """Record kind, valued by its 8-byte leading discriminator."""

    MARKET = _discriminator("Market")
    BET = _discriminator("Bet")
    ORACLE_EVENT = _discriminator("OracleEvent")
    ORACLE_ASSERTION = _discriminator("OracleAssertion")

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_bytes(cls, data: bytes) -> AccountKind:
        """Identify the record kind from the leading discriminator."""
        if len(data) < DISCRIMINATOR_LEN:
            raise MalformedAccount(
                f"account is {len(data)} bytes, shorter than the {DISCRIMINATOR_LEN}-byte discriminator"
            )
        head = bytes(data[:DISCRIMINATOR_LEN])
        try:
            return cls(head)
        except ValueError:
            raise UnknownDiscriminator(f"unknown account discriminator {head.hex()}") from None


class AccountReader:
    """Bounds-checked sequential reader. Never reads past the buffer."""

    def __init__(self, data: bytes, kind: AccountKind, min_size: int) -> None:
        self._data = bytes(data)
        self._offset = 0
        self.kind = kind
        if len(self._data) < min_size:
            raise MalformedAccount(
                f"{kind.label} account is {len(self._data)} bytes, minimum is {min_size}"
            )
        found = AccountKind.from_bytes(self._data)
        if found is not kind:
            raise MalformedAccount(f"expected {kind.label} account, found {found.label}")
        self._offset = DISCRIMINATOR_LEN

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def _take(self, n: int, field: str) -> bytes:
        if n > self.remaining:
            raise MalformedAccount(
                f"{self.kind.label}.{field}: needs {n} bytes at offset {self._offset}, {self.remaining} left"
            )
        chunk = self._data[self._offset : self._offset + n]
        self._offset += n
        return chunk

    def u8(self, field: str) -> int:
        return _U8.unpack(self._take(U8_SIZE, field))[0]

    def u32(self, field: str) -> int:
        return _U32.unpack(self._take(U32_SIZE, field))[0]

    def u64(self, field: str) -> int:
        return _U64.unpack(self._take(U64_SIZE, field))[0]

    def i32(self, field: str) -> int:
        return _I32.unpack(self._take(I32_SIZE, field))[0]

    def f32(self, field: str) -> float:
        return _F32.unpack(self._take(F32_SIZE, field))[0]

    def flag(self, field: str) -> bool:
        value = self.u8(field)
        if value not in (0, 1):
            raise MalformedAccount(f"{self.kind.label}.{field}: flag byte must be 0 or 1, got {value}")
        return value == 1

    def pubkey(self, field: str) -> str:
        return self._take(PUBKEY_LEN, field).hex()

    def fixed(self, n: int, field: str) -> bytes:
        return self._take(n, field)

    def blob(self, field: str) -> bytes:
        length = self.u32(f"{field}.len")
        return self._take(length, field)

    def string(self, field: str) -> str:
        raw = self.blob(field)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedAccount(f"{self.kind.label}.{field}: invalid UTF-8 ({e.reason})") from None

    def finish(self) -> None:
        if self.remaining:
            raise MalformedAccount(f"{self.kind.label} account has {self.remaining} trailing bytes")


class AccountWriter:
    """Sequential writer producing the exact inverse of AccountReader."""

    def __init__(self, kind: AccountKind) -> None:
        self.kind = kind
        self._parts: list[bytes] = [kind.value]

    def _pack(self, codec: struct.Struct, value: int | float, field: str) -> None:
        try:
            self._parts.append(codec.pack(value))
        except (struct.error, OverflowError) as e:
            raise MalformedAccount(f"{self.kind.label}.{field}: {value!r} out of range ({e})") from None

    def u8(self, value: int, field: str) -> None:
        self._pack(_U8, value, field)

    def u32(self, value: int, field: str) -> None:
        self._pack(_U32, value, field)

    def u64(self, value: int, field: str) -> None:
        self._pack(_U64, value, field)

    def i32(self, value: int, field: str) -> None:
        self._pack(_I32, value, field)

    def f32(self, value: float, field: str) -> None:
        self._pack(_F32, value, field)

    def flag(self, value: bool) -> None:
        self._parts.append(b"\x01" if value else b"\x00")

    def pubkey(self, address: str, field: str) -> None:
        raw = bytes.fromhex(address)
        if len(raw) != PUBKEY_LEN:
            raise MalformedAccount(f"{self.kind.label}.{field}: pubkey must be {PUBKEY_LEN} bytes")
        self._parts.append(raw)

    def fixed(self, raw: bytes, n: int, field: str) -> None:
        if len(raw) != n:
            raise MalformedAccount(f"{self.kind.label}.{field}: expected {n} bytes, got {len(raw)}")
        self._parts.append(raw)

    def blob(self, raw: bytes, field: str) -> None:
        self.u32(len(raw), f"{field}.len")
        self._parts.append(raw)

    def string(self, value: str, field: str) -> None:
        self.blob(value.encode("utf-8"), field)

    def getvalue(self) -> bytes:
        return b"".join(self._parts)


def build_record(model: type[M], kind: AccountKind, values: dict[str, Any]) -> M:
    """Validate decoded fields into a model; range or invariant failures are MalformedAccount."""
    try:
        return model.model_validate(values)
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ())) or "record"
        raise MalformedAccount(f"{kind.label}.{loc}: {first.get('msg', 'invalid value')}") from None
