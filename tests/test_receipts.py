"""Unit tests for receipt number generation."""

import re

from app.api.v1.fees.receipts import generate_receipt_number, generate_refund_number


def test_receipt_number_format() -> None:
    """Prefix, millisecond timestamp, 6 uppercase alphanumerics."""
    number = generate_receipt_number(now_ms=1767225600000)
    assert re.match(r"^RCP-1767225600000-[A-Z0-9]{6}$", number)


def test_refund_number_uses_distinct_prefix() -> None:
    number = generate_refund_number()
    assert number.startswith("RFD-")
    assert not number.startswith("RCP-")


def test_receipt_numbers_differ_within_same_millisecond() -> None:
    """Random suffix separates receipts issued at the same instant."""
    numbers = {generate_receipt_number(now_ms=1) for _ in range(20)}
    assert len(numbers) >= 2
