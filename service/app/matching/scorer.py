"""Pairwise invoice/payment scoring.

Each criterion yields a sub-score in [0, 1]. The sub-scores are combined by
a decision tree, first applicable rule wins:

1. sub-account identifies the buyer; invoice number or exact amount close
   to the due date makes it certain, otherwise it stays a suggestion
2. number + amount + name agree                     -> 1.0
3. number + amount agree, name does not              -> 0.80 (review)
4. exact number + strong name, amount diverges       -> 0.85-0.95
5. weighted sum, boosted by a partial sub-account match
6. after rule 5, a name mismatch without tax-ID proof never auto-matches
"""

import re
from datetime import date
from decimal import Decimal

from app.config import DEFAULT_CONFIG, MatchingConfig
from app.matching.invoice_numbers import DEFAULT_SHAPE, InvoiceNumberShape
from app.matching.normalizers import (
    compare_company_names,
    compare_subaccounts,
    digits_only,
    extract_tax_id_from_metadata,
    extract_tax_ids,
    normalize_tax_id,
    word_overlap_score,
)
from app.matching.tracing import ScoringTracer, emit
from app.schemas.matching import Invoice, MatchBreakdown, MatchResult, Payment

NAME_MISMATCH = 0.5
SUBACCOUNT_ONLY_CAP = 0.84
NAME_MISMATCH_CONFIDENCE = 0.80
SUBACCOUNT_DATE_WINDOW_DAYS = 30

# (max days from due date, score)
_DATE_STEPS = [(8, 1.0), (13, 0.9), (19, 0.8), (35, 0.6), (65, 0.4), (95, 0.2)]

# (max relative difference, score)
_AMOUNT_STEPS = [
    (Decimal("0.001"), 0.99),
    (Decimal("0.01"), 0.9),
    (Decimal("0.05"), 0.7),
    (Decimal("0.1"), 0.5),
]


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# ── Criteria ───────────────────────────────────────────────────────────

def calculate_amount_score(invoice_amount, payment_amount) -> float:
    invoice_amount = _to_decimal(invoice_amount)
    payment_amount = _to_decimal(payment_amount)
    if invoice_amount == payment_amount:
        return 1.0
    if invoice_amount <= 0:
        return 0.0
    ratio = abs(invoice_amount - payment_amount) / invoice_amount
    for limit, score in _AMOUNT_STEPS:
        if ratio <= limit:
            return score
    return 0.0


def calculate_date_score(due_date: date, payment_date: date) -> float:
    days = abs((payment_date - due_date).days)
    for limit, score in _DATE_STEPS:
        if days <= limit:
            return score
    return 0.1


def calculate_name_score(buyer_name: str, sender_name: str) -> float:
    score = compare_company_names(buyer_name, sender_name)
    if score < NAME_MISMATCH:
        score = max(score, word_overlap_score(buyer_name, sender_name))
    return score


def calculate_tax_id_score(buyer_tax_id: str | None, title: str, extended_title: str | None = None) -> float:
    buyer = normalize_tax_id(buyer_tax_id)
    if not buyer:
        return 0.0
    if extract_tax_id_from_metadata(extended_title) == buyer:
        return 1.0
    texts = [t for t in (title, extended_title) if t]
    if any(buyer in extract_tax_ids(t) for t in texts):
        return 1.0
    if any(buyer in t for t in texts):
        return 0.9
    return 0.0


def calculate_invoice_number_score(
    invoice_number: str,
    title: str,
    extended_title: str | None = None,
    shape: InvoiceNumberShape = DEFAULT_SHAPE,
) -> float:
    """How strongly the transfer text cites the invoice number.

    Layers: structural match of the whole text, then each extracted number
    (structured numbers must agree on both sequence and month/year), then
    weak digit coincidences.
    """
    if not invoice_number:
        return 0.0
    text = shape.normalize_text(" ".join(t for t in (title, extended_title) if t))
    if not text.strip():
        return 0.0

    flexible = shape.match(invoice_number, text)
    if flexible >= 0.9:
        return flexible

    invoice_key = shape.structural_key(invoice_number)
    invoice_canonical = shape.canonical(invoice_number)
    cited = shape.cited_keys(text)
    for candidate in shape.extract_all(text):
        candidate_key = shape.structural_key(candidate)
        if invoice_key and candidate_key:
            # A different sequence or month is a different invoice, not a weaker match.
            # Once a prefixed number is cited, bare runs (dates) do not count.
            if invoice_key == candidate_key and (not cited or candidate_key in cited):
                return 0.95
            continue
        if shape.canonical(candidate) == invoice_canonical:
            return 0.95
        score = shape.match(invoice_number, candidate)
        if score >= 0.9:
            return score

    invoice_digits = digits_only(invoice_number)
    if len(invoice_digits) >= 3 and invoice_digits == digits_only(text):
        return 0.7

    prefix = shape.prefix(invoice_number)
    if prefix and re.search(r"\b%s" % re.escape(prefix), text, re.IGNORECASE):
        return 0.1
    if len(invoice_digits) >= 4 and invoice_digits[-4:] in text:
        return 0.1
    return 0.0


# ── Combination ────────────────────────────────────────────────────────

def _reasons(invoice: Invoice, payment: Payment, b: MatchBreakdown) -> list[str]:
    reasons: list[str] = []
    if b.subaccount >= 1.0:
        reasons.append("Sub-account assigned to the buyer")
    elif b.subaccount > 0:
        reasons.append("Sub-account partially matches the buyer")

    if b.amount >= 0.9:
        reasons.append("Amount matches: %.2f %s" % (payment.amount, payment.currency))
    elif b.amount >= 0.5:
        reasons.append("Amount close: %.2f vs %.2f %s" % (payment.amount, invoice.gross_amount, invoice.currency))

    if b.invoice_number >= 0.9:
        reasons.append("Invoice number %s found in the title" % invoice.invoice_number)
    elif b.invoice_number >= 0.6:
        reasons.append("Invoice number partially matches the title")

    if b.name >= 0.8:
        reasons.append("Sender name matches the buyer")
    elif b.name >= NAME_MISMATCH:
        reasons.append("Sender name similar to the buyer")

    if b.tax_id >= 0.9:
        reasons.append("Buyer tax ID found in the transfer details")
    if b.date >= 0.8:
        reasons.append("Paid close to the due date")
    return reasons


def calculate_match_confidence(
    invoice: Invoice,
    payment: Payment,
    config: MatchingConfig = DEFAULT_CONFIG,
    shape: InvoiceNumberShape = DEFAULT_SHAPE,
    tracer: ScoringTracer | None = None,
) -> MatchResult:
    """Score one invoice against one payment.

    The confidence is always computed; filtering by threshold is up to the
    caller.
    """
    breakdown = MatchBreakdown(
        subaccount=compare_subaccounts(invoice.buyer_subaccount, payment.sender_subaccount),
        amount=calculate_amount_score(invoice.gross_amount, payment.amount),
        invoice_number=calculate_invoice_number_score(
            invoice.invoice_number, payment.title, payment.extended_title, shape,
        ),
        name=calculate_name_score(invoice.buyer_name, payment.sender_name),
        tax_id=calculate_tax_id_score(invoice.buyer_tax_id, payment.title, payment.extended_title),
        date=calculate_date_score(invoice.due_date, payment.transaction_date),
    )
    emit(tracer, "criteria_scored", invoice_id=invoice.id, payment_id=payment.id, **breakdown.model_dump())

    reasons = _reasons(invoice, payment, breakdown)
    below_auto = config.high_threshold - 0.01
    amount, number, name = breakdown.amount, breakdown.invoice_number, breakdown.name

    if breakdown.subaccount >= 1.0:
        days = abs((payment.transaction_date - invoice.due_date).days)
        if number >= 0.9:
            rule, confidence = "subaccount_number", 1.0
        elif amount >= 0.99 and days <= SUBACCOUNT_DATE_WINDOW_DAYS:
            rule, confidence = "subaccount_amount_date", 1.0
        else:
            rule = "subaccount_only"
            confidence = min(
                SUBACCOUNT_ONLY_CAP,
                below_auto,
                0.7 + 0.15 * amount + 0.10 * breakdown.date,
            )
            reasons.append("Buyer identified by sub-account only; confirm which invoice is paid")
    elif number >= 0.9 and amount >= 0.9 and name >= NAME_MISMATCH:
        rule, confidence = "number_amount_name", 1.0
    elif number >= 0.9 and amount >= 0.9:
        rule, confidence = "number_amount_name_mismatch", min(NAME_MISMATCH_CONFIDENCE, below_auto)
        reasons.append("Warning: sender name differs from the buyer, possibly an intermediary")
    elif number >= 0.95 and name >= 0.8 and amount >= 0.5:
        rule = "number_name_amount_diverges"
        confidence = min(0.95, 0.85 + (amount - 0.5) * 0.25)
        reasons.append("Amount differs from the invoice; partial payment or fees")
    else:
        rule = "weighted"
        w = config.weights
        confidence = (
            amount * w.amount
            + number * w.invoice_number
            + name * w.name
            + breakdown.tax_id * w.tax_id
            + breakdown.date * w.date
        )
        if breakdown.subaccount > 0:
            confidence = min(1.0, confidence + breakdown.subaccount * 0.3)

    confidence = round(max(0.0, min(1.0, confidence)), 2)

    if (
        rule == "weighted"
        and name < NAME_MISMATCH
        and breakdown.tax_id < 0.9
        and confidence >= config.high_threshold
    ):
        confidence = round(below_auto, 2)
        reasons.append("Warning: sender name does not match the buyer; manual confirmation required")
        emit(tracer, "name_mismatch_guard", invoice_id=invoice.id, payment_id=payment.id)

    emit(tracer, "confidence_computed", invoice_id=invoice.id, payment_id=payment.id,
         rule=rule, confidence=confidence)

    return MatchResult(
        invoice_id=invoice.id,
        payment_id=payment.id,
        confidence=confidence,
        breakdown=breakdown,
        reasons=reasons,
    )


def match_quality(confidence: float, config: MatchingConfig = DEFAULT_CONFIG) -> str:
    """Label for displaying a confidence value."""
    if confidence >= config.high_threshold:
        return "high"
    if confidence >= 0.75:
        return "good"
    if confidence >= config.medium_threshold:
        return "medium"
    return "low"
