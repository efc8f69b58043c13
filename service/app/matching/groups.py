"""Sum matching: one payment settling several invoices of one buyer.

Invoices left over after the pairwise pass are grouped by buyer and issue
month. A payment equal to a group's gross total (within 0.1%) from a
sender identifiable as that buyer becomes a group suggestion. A second
pass chains consecutive months of the same buyer. Group suggestions are
never applied automatically.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import structlog

from app.config import DEFAULT_CONFIG, MatchingConfig
from app.matching.invoice_numbers import DEFAULT_SHAPE, InvoiceNumberShape
from app.matching.normalizers import (
    compare_company_names,
    compare_subaccounts,
    extract_tax_ids,
    normalize_company_name,
    normalize_tax_id,
    word_overlap_score,
)
from app.matching.scorer import calculate_invoice_number_score, calculate_tax_id_score
from app.schemas.matching import GroupMatchSuggestion, GroupPeriod, Invoice, Payment

logger = structlog.get_logger()

AMOUNT_TOLERANCE = Decimal("0.001")
BASE_CONFIDENCE = 0.8
MAX_CONFIDENCE = 0.95
MULTI_MONTH_PENALTY = 0.95
MIN_NAME_SCORE = 0.6
MAX_CITED_NUMBERS = 3


@dataclass
class BuyerMatch:
    score: float
    reason: str


def buyer_key(invoice: Invoice) -> str:
    tax_id = normalize_tax_id(invoice.buyer_tax_id)
    if tax_id:
        return "tax:" + tax_id
    return "name:" + normalize_company_name(invoice.buyer_name)


def month_key(day: date) -> str:
    return "%04d-%02d" % (day.year, day.month)


def _month_index(day: date) -> int:
    return day.year * 12 + day.month - 1


def match_buyer(invoices: list[Invoice], payment: Payment) -> BuyerMatch | None:
    """Identify the group's buyer as the payment's sender, strongest evidence first."""
    subaccount = max(compare_subaccounts(inv.buyer_subaccount, payment.sender_subaccount) for inv in invoices)
    if subaccount >= 0.9:
        return BuyerMatch(max(0.8, subaccount), "Sender sub-account assigned to the buyer")

    tax_id = next((t for t in (normalize_tax_id(inv.buyer_tax_id) for inv in invoices) if t), None)
    if tax_id:
        tax_score = calculate_tax_id_score(tax_id, payment.title, payment.extended_title)
        if tax_score < 0.9 and tax_id in extract_tax_ids(payment.sender_name):
            tax_score = 0.9
        if tax_score >= 0.9:
            return BuyerMatch(max(0.8, tax_score), "Buyer tax ID found in the transfer")

    buyer_name = invoices[0].buyer_name
    name = compare_company_names(buyer_name, payment.sender_name)
    if name >= MIN_NAME_SCORE:
        return BuyerMatch(name, "Sender name matches the buyer")

    text = " ".join(t for t in (payment.sender_name, payment.title, payment.extended_title) if t)
    overlap = word_overlap_score(buyer_name, text, strict=True)
    if overlap > 0:
        return BuyerMatch(overlap, "Buyer name words found in the transfer")
    return None


def _suggest(
    invoices: list[Invoice],
    payment: Payment,
    buyer: BuyerMatch,
    shape: InvoiceNumberShape,
    penalty: float,
) -> GroupMatchSuggestion:
    total = sum((inv.gross_amount for inv in invoices), Decimal("0"))
    exact = abs(payment.amount - total) < Decimal("0.01")
    cited = sum(
        1 for inv in invoices
        if calculate_invoice_number_score(inv.invoice_number, payment.title, payment.extended_title, shape) >= 0.9
    )

    confidence = BASE_CONFIDENCE
    confidence += 0.1 if exact else 0.05
    confidence += 0.1 * buyer.score
    confidence += 0.05 * min(cited, MAX_CITED_NUMBERS)
    confidence = round(min(MAX_CONFIDENCE, confidence) * penalty, 2)

    start = month_key(invoices[0].issue_date)
    end = month_key(invoices[-1].issue_date)
    reasons = [
        "%d invoices of %s totaling %.2f %s" % (len(invoices), invoices[0].buyer_name, total, payment.currency),
        "Payment equals the invoices' total" if exact else "Payment within 0.1% of the invoices' total",
        buyer.reason,
    ]
    if cited:
        reasons.append("%d invoice number(s) cited in the title" % cited)
    if start != end:
        reasons.append("Invoices span %s to %s" % (start, end))

    return GroupMatchSuggestion(
        invoices=invoices,
        payment=payment,
        confidence=confidence,
        total_invoice_amount=total,
        buyer_name=invoices[0].buyer_name,
        buyer_tax_id=next((inv.buyer_tax_id for inv in invoices if normalize_tax_id(inv.buyer_tax_id)), None),
        group_period=GroupPeriod(start=start, end=end),
        reasons=reasons,
    )


def _find_payment(
    invoices: list[Invoice],
    payments: list[Payment],
    used_payments: set[str],
    shape: InvoiceNumberShape,
    penalty: float,
) -> GroupMatchSuggestion | None:
    total = sum((inv.gross_amount for inv in invoices), Decimal("0"))
    currency = invoices[0].currency
    best = None
    for payment in payments:
        if payment.id in used_payments or payment.currency != currency:
            continue
        if abs(payment.amount - total) > total * AMOUNT_TOLERANCE:
            continue
        buyer = match_buyer(invoices, payment)
        if buyer is None:
            continue
        suggestion = _suggest(invoices, payment, buyer, shape, penalty)
        if best is None or suggestion.confidence > best.confidence:
            best = suggestion
    return best


def _consecutive_runs(months: list[int]) -> list[list[int]]:
    runs: list[list[int]] = []
    for month in sorted(months):
        if runs and month == runs[-1][-1] + 1:
            runs[-1].append(month)
        else:
            runs.append([month])
    return runs


def find_group_matches(
    invoices: list[Invoice],
    payments: list[Payment],
    config: MatchingConfig = DEFAULT_CONFIG,
    max_months_to_group: int | None = None,
    shape: InvoiceNumberShape = DEFAULT_SHAPE,
) -> list[GroupMatchSuggestion]:
    """Group suggestions for unmatched invoices against unclaimed payments.

    Each payment and each invoice appears in at most one group suggestion.
    """
    max_months = config.max_months_to_group if max_months_to_group is None else max_months_to_group
    ordered = sorted(invoices, key=lambda inv: inv.issue_date)
    used_payments: set[str] = set()
    grouped: set[str] = set()
    suggestions: list[GroupMatchSuggestion] = []

    by_month: dict[tuple[str, str, str], list[Invoice]] = defaultdict(list)
    for invoice in ordered:
        by_month[(buyer_key(invoice), invoice.currency, month_key(invoice.issue_date))].append(invoice)

    for group in by_month.values():
        if len(group) < 2:
            continue
        suggestion = _find_payment(group, payments, used_payments, shape, 1.0)
        if suggestion:
            suggestions.append(suggestion)
            used_payments.add(suggestion.payment.id)
            grouped.update(inv.id for inv in group)

    if max_months >= 2:
        by_buyer: dict[tuple[str, str], dict[int, list[Invoice]]] = defaultdict(lambda: defaultdict(list))
        for invoice in ordered:
            if invoice.id not in grouped:
                by_buyer[(buyer_key(invoice), invoice.currency)][_month_index(invoice.issue_date)].append(invoice)

        for months in by_buyer.values():
            for run in _consecutive_runs(list(months)):
                for span in range(2, min(max_months, len(run)) + 1):
                    for start in range(len(run) - span + 1):
                        window = run[start:start + span]
                        group = [inv for m in window for inv in months[m] if inv.id not in grouped]
                        spanned = {_month_index(inv.issue_date) for inv in group}
                        if len(group) < 2 or len(spanned) < span:
                            continue
                        suggestion = _find_payment(group, payments, used_payments, shape, MULTI_MONTH_PENALTY)
                        if suggestion:
                            suggestions.append(suggestion)
                            used_payments.add(suggestion.payment.id)
                            grouped.update(inv.id for inv in group)

    for suggestion in suggestions:
        logger.info(
            "group_match_found",
            payment_id=suggestion.payment.id,
            invoice_count=len(suggestion.invoices),
            confidence=suggestion.confidence,
            period_start=suggestion.group_period.start,
            period_end=suggestion.group_period.end,
        )

    ranked = sorted(suggestions, key=lambda s: -s.confidence)
    return ranked[: config.max_group_suggestions]
