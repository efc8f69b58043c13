"""Shared fixtures for matching tests."""

from datetime import date
from decimal import Decimal

import pytest

from app.schemas.matching import Invoice, Payment

INVOICE_DEFAULTS = {
    "id": "inv-1",
    "invoice_number": "PS 17/12/2025",
    "issue_date": date(2025, 12, 17),
    "due_date": date(2025, 12, 31),
    "gross_amount": Decimal("1000.00"),
    "net_amount": Decimal("813.01"),
    "currency": "PLN",
    "buyer_name": "ACME Sp. z o.o.",
}

PAYMENT_DEFAULTS = {
    "id": "pay-1",
    "transaction_date": date(2026, 1, 2),
    "amount": Decimal("1000.00"),
    "currency": "PLN",
    "sender_name": "ACME Sp. z o.o.",
    "title": "Płatność za PS17/12/2025",
}


@pytest.fixture
def make_invoice():
    def _make(**overrides) -> Invoice:
        return Invoice(**{**INVOICE_DEFAULTS, **overrides})
    return _make


@pytest.fixture
def make_payment():
    def _make(**overrides) -> Payment:
        return Payment(**{**PAYMENT_DEFAULTS, **overrides})
    return _make
