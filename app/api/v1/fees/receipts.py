"""
Receipt number generation for ledger entries.
Format: prefix + millisecond timestamp + 6 random uppercase alphanumerics, e.g. RCP-1767225600000-4K9Q2Z.
Payments use RCP, refunds use RFD. The unique column on the ledger is the final guard.
"""

import secrets
import string
import time
from typing import Optional

PAYMENT_PREFIX = "RCP"
REFUND_PREFIX = "RFD"

_ALPHABET = string.ascii_uppercase + string.digits


def generate_receipt_number(prefix: str = PAYMENT_PREFIX, now_ms: Optional[int] = None) -> str:
    """Time-based receipt number with a random suffix (secrets, not random)."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"{prefix}-{now_ms}-{suffix}"


def generate_refund_number(now_ms: Optional[int] = None) -> str:
    return generate_receipt_number(REFUND_PREFIX, now_ms=now_ms)
