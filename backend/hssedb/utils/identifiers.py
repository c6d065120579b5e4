from __future__ import annotations

import os
import secrets
import time
import uuid
from datetime import datetime
from typing import Optional

# Crockford-style alphabet: no I, L, O, U to keep numbers readable on paper forms.
_SUFFIX_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    UUIDv7 layout per draft:
    - 48-bit Unix timestamp in milliseconds
    - 4-bit version (0b0111)
    - 74-bit randomness
    """
    ts_ms = int(time.time() * 1000)
    ts_bytes = ts_ms.to_bytes(6, "big", signed=False)
    rand_bytes = os.urandom(10)
    raw = bytearray(ts_bytes + rand_bytes)
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))


def random_block(length: int = 4) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def generate_business_number(
    prefix: str,
    *,
    stamp_format: str,
    now: datetime,
    suffix_length: int = 4,
    year_segment: bool = False,
    infix: Optional[str] = None,
) -> str:
    """
    Build a human-readable, roughly chronological business number.

    Examples:
        SEC-2025-0412101530-7KQ2   (prefix="SEC", year_segment=True, stamp="%m%d%H%M%S")
        INS-20250412-4F9A2C        (prefix="INS", stamp="%Y%m%d", suffix_length=6)

    The random suffix makes two numbers generated inside the same timestamp
    bucket distinct; the unique constraint on each number column is the
    final arbiter.
    """
    parts = [prefix]
    if infix:
        parts.append(infix)
    if year_segment:
        parts.append(f"{now:%Y}")
    parts.append(now.strftime(stamp_format))
    parts.append(random_block(suffix_length))
    return "-".join(parts)
