"""Shared field types and integer ranges."""

from __future__ import annotations

from typing import Annotated

from pydantic import Field, StringConstraints

U8_MAX = 2**8 - 1
U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1
I32_MIN = -(2**31)
I32_MAX = 2**31 - 1

# 32-byte account address / identity rendered as 64 lowercase hex chars.
Address = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_lower=True, pattern=r"^[0-9a-fA-F]{64}$"),
]

U64 = Annotated[int, Field(ge=0, le=U64_MAX)]
U32 = Annotated[int, Field(ge=0, le=U32_MAX)]
U8 = Annotated[int, Field(ge=0, le=U8_MAX)]


def address_bytes(address: str) -> bytes:
    """Raw 32 bytes of a hex address."""
    raw = bytes.fromhex(address)
    if len(raw) != 32:
        raise ValueError(f"address must be 32 bytes, got {len(raw)}")
    return raw
