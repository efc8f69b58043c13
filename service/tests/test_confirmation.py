from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.matching.confirmation import MatchConflictError, confirm_group, confirm_match
from app.schemas.matching import (
    ConfirmedMatch,
    GroupMatchSuggestion,
    GroupPeriod,
    MatchBreakdown,
    MatchResult,
    MatchType,
)

WHEN = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)


def _result(invoice_id="inv-1", payment_id="pay-1", confidence=0.92):
    return MatchResult(
        invoice_id=invoice_id, payment_id=payment_id, confidence=confidence, breakdown=MatchBreakdown(),
    )


def _confirmed(invoice_id, payment_id):
    return ConfirmedMatch(
        invoice_id=invoice_id,
        payment_id=payment_id,
        confidence_score=1.0,
        match_type=MatchType.MANUAL,
        matched_at=WHEN,
    )


@pytest.fixture
def group(make_invoice, make_payment):
    invoices = [
        make_invoice(id="a", gross_amount=Decimal("400.00")),
        make_invoice(id="b", gross_amount=Decimal("600.00")),
    ]
    return GroupMatchSuggestion(
        invoices=invoices,
        payment=make_payment(id="pay-sum"),
        confidence=0.95,
        total_invoice_amount=Decimal("1000.00"),
        buyer_name="ACME Sp. z o.o.",
        group_period=GroupPeriod(start="2025-12", end="2025-12"),
    )


def test_confirm_match():
    match = confirm_match(_result(), MatchType.MANUAL, matched_at=WHEN)
    assert match.invoice_id == "inv-1"
    assert match.payment_id == "pay-1"
    assert match.confidence_score == 0.92
    assert match.match_type == MatchType.MANUAL
    assert match.matched_at == WHEN


def test_confirm_match_defaults_to_now():
    match = confirm_match(_result())
    assert match.match_type == MatchType.AUTO
    assert match.matched_at.tzinfo is not None


def test_confirm_match_rejects_matched_invoice():
    with pytest.raises(MatchConflictError) as exc_info:
        confirm_match(_result(), existing=[_confirmed("inv-1", "pay-9")])
    assert exc_info.value.invoice_ids == ["inv-1"]
    assert exc_info.value.payment_ids == []


def test_confirm_match_rejects_matched_payment():
    with pytest.raises(MatchConflictError) as exc_info:
        confirm_match(_result(), existing=[_confirmed("inv-9", "pay-1")])
    assert exc_info.value.payment_ids == ["pay-1"]


def test_confirm_group_fans_out(group):
    rows = confirm_group(group, matched_at=WHEN)
    assert [(r.invoice_id, r.payment_id) for r in rows] == [("a", "pay-sum"), ("b", "pay-sum")]
    assert all(r.confidence_score == 0.95 for r in rows)
    assert all(r.match_type == MatchType.AUTO for r in rows)
    assert all(r.matched_at == WHEN for r in rows)


def test_confirm_group_rejects_matched_invoice(group):
    with pytest.raises(MatchConflictError, match="invoice"):
        confirm_group(group, existing=[_confirmed("b", "pay-7")])


def test_confirm_group_rejects_repeated_invoice(group):
    repeated = group.model_copy(update={"invoices": [group.invoices[0], group.invoices[0]]})
    with pytest.raises(MatchConflictError):
        confirm_group(repeated)
