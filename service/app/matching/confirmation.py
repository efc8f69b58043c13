"""Turning suggestions into confirmed matches.

Persistence lives outside this service; these helpers build the rows it
stores and enforce that an invoice and a payment each appear in at most
one confirmed match. A confirmed group is the one exception: its invoices
all share the group's payment.
"""

from datetime import datetime, timezone

from app.schemas.matching import ConfirmedMatch, GroupMatchSuggestion, MatchResult, MatchType


class MatchConflictError(Exception):
    """A confirmation would reuse an already matched invoice or payment."""

    def __init__(self, message: str, invoice_ids: list[str], payment_ids: list[str]):
        super().__init__(message)
        self.invoice_ids = invoice_ids
        self.payment_ids = payment_ids


def _check_free(invoice_ids: list[str], payment_id: str, existing: list[ConfirmedMatch]) -> None:
    taken_invoices = {m.invoice_id for m in existing}
    taken_payments = {m.payment_id for m in existing}
    busy_invoices = [i for i in invoice_ids if i in taken_invoices]
    busy_payments = [payment_id] if payment_id in taken_payments else []
    if busy_invoices or busy_payments:
        parts = []
        if busy_invoices:
            parts.append("invoice(s) %s" % ", ".join(busy_invoices))
        if busy_payments:
            parts.append("payment %s" % payment_id)
        raise MatchConflictError(
            "Already matched: %s." % " and ".join(parts),
            invoice_ids=busy_invoices,
            payment_ids=busy_payments,
        )


def confirm_match(
    result: MatchResult,
    match_type: MatchType = MatchType.AUTO,
    existing: list[ConfirmedMatch] | None = None,
    matched_at: datetime | None = None,
) -> ConfirmedMatch:
    _check_free([result.invoice_id], result.payment_id, existing or [])
    return ConfirmedMatch(
        invoice_id=result.invoice_id,
        payment_id=result.payment_id,
        confidence_score=result.confidence,
        match_type=match_type,
        matched_at=matched_at or datetime.now(timezone.utc),
    )


def confirm_group(
    suggestion: GroupMatchSuggestion,
    existing: list[ConfirmedMatch] | None = None,
    match_type: MatchType = MatchType.AUTO,
    matched_at: datetime | None = None,
) -> list[ConfirmedMatch]:
    """One confirmed match per invoice of the group, all sharing its payment."""
    invoice_ids = [inv.id for inv in suggestion.invoices]
    if len(set(invoice_ids)) != len(invoice_ids):
        raise MatchConflictError(
            "Group lists an invoice more than once.", invoice_ids=invoice_ids, payment_ids=[],
        )
    _check_free(invoice_ids, suggestion.payment.id, existing or [])
    when = matched_at or datetime.now(timezone.utc)
    return [
        ConfirmedMatch(
            invoice_id=invoice_id,
            payment_id=suggestion.payment.id,
            confidence_score=suggestion.confidence,
            match_type=match_type,
            matched_at=when,
        )
        for invoice_id in invoice_ids
    ]
