from __future__ import annotations

import os
import time
import uuid
from typing import Optional


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    Used as the primary key of append-only tables (audit events) and of
    users, so rows sort by creation time without an extra index.
    """
    ts_ms = int(time.time() * 1000)
    raw = bytearray(ts_ms.to_bytes(6, "big", signed=False) + os.urandom(10))
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))


def normalize_vehicle_number(value: Optional[str]) -> str:
    """
    Canonical form of a chassis or engine number: trimmed, inner
    whitespace removed, upper-cased. Stock, purchase and invoice rows
    are always compared on this form.
    """
    return "".join((value or "").split()).upper()
