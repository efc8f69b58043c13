"""Entry points of the matching core.

Synchronous, single-threaded and stateless between calls: every call takes
a full snapshot of invoices and payments and returns a complete result.
Identical inputs give identical outputs.
"""

from dataclasses import dataclass

import structlog

from app.config import DEFAULT_CONFIG, MatchingConfig
from app.matching.candidates import PaymentIndex
from app.matching.groups import find_group_matches
from app.matching.guard import check_capacity
from app.matching.invoice_numbers import DEFAULT_SHAPE, InvoiceNumberShape
from app.matching.resolver import ClaimSet, resolve_assignments
from app.matching.scorer import calculate_match_confidence
from app.matching.tracing import ScoringTracer
from app.schemas.matching import (
    ConfirmedMatch,
    ExtendedMatchingResult,
    Invoice,
    MatchingResult,
    MatchResult,
    Payment,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class GroupMatchingOptions:
    enable_group_matching: bool = True
    max_months_to_group: int | None = None


def exclude_confirmed(
    invoices: list[Invoice],
    payments: list[Payment],
    confirmed: list[ConfirmedMatch],
) -> tuple[list[Invoice], list[Payment]]:
    """Drop records that already take part in a confirmed match."""
    matched_invoices = {m.invoice_id for m in confirmed}
    matched_payments = {m.payment_id for m in confirmed}
    return (
        [inv for inv in invoices if inv.id not in matched_invoices],
        [pay for pay in payments if pay.id not in matched_payments],
    )


def score_candidates(
    invoices: list[Invoice],
    payments: list[Payment],
    config: MatchingConfig = DEFAULT_CONFIG,
    shape: InvoiceNumberShape = DEFAULT_SHAPE,
    tracer: ScoringTracer | None = None,
) -> list[MatchResult]:
    """Score every invoice against its candidates, keeping suggestion-worthy pairs."""
    index = PaymentIndex(payments, config, shape)
    results: list[MatchResult] = []
    comparisons = 0
    for invoice in invoices:
        for payment in index.candidates(invoice):
            comparisons += 1
            result = calculate_match_confidence(invoice, payment, config, shape, tracer)
            if result.confidence >= config.medium_threshold:
                results.append(result)
    logger.debug("candidates_scored", comparisons=comparisons, retained=len(results))
    return results


def _run_pairwise(
    invoices: list[Invoice],
    payments: list[Payment],
    config: MatchingConfig,
    shape: InvoiceNumberShape,
    tracer: ScoringTracer | None,
) -> tuple[MatchingResult, list[Invoice], ClaimSet]:
    error = check_capacity(len(invoices), len(payments), config)
    if error:
        result = MatchingResult(
            unmatched_invoices=[inv.id for inv in invoices],
            unmatched_payments=[pay.id for pay in payments],
            error=error,
        )
        return result, [], ClaimSet()

    matchable = [inv for inv in invoices if inv.is_matchable]
    claims = ClaimSet()
    scored = score_candidates(matchable, payments, config, shape, tracer)
    auto_matches, suggestions = resolve_assignments(scored, claims, config)

    result = MatchingResult(
        auto_matches=auto_matches,
        suggestions=suggestions,
        unmatched_invoices=[inv.id for inv in matchable if inv.id not in claims.invoices],
        unmatched_payments=[pay.id for pay in payments if pay.id not in claims.payments],
    )
    logger.info(
        "matching_completed",
        invoices=len(matchable),
        payments=len(payments),
        auto_matches=len(auto_matches),
        suggestions=len(suggestions),
    )
    return result, matchable, claims


def find_matches(
    invoices: list[Invoice],
    payments: list[Payment],
    config: MatchingConfig = DEFAULT_CONFIG,
    shape: InvoiceNumberShape = DEFAULT_SHAPE,
    tracer: ScoringTracer | None = None,
) -> MatchingResult:
    """Pairwise matching with the resource guard.

    A capacity problem is returned in ``error`` with every record reported
    unmatched; check it before trusting the match lists.
    """
    result, _, _ = _run_pairwise(invoices, payments, config, shape, tracer)
    return result


def find_matches_extended(
    invoices: list[Invoice],
    payments: list[Payment],
    options: GroupMatchingOptions = GroupMatchingOptions(),
    config: MatchingConfig = DEFAULT_CONFIG,
    shape: InvoiceNumberShape = DEFAULT_SHAPE,
    tracer: ScoringTracer | None = None,
) -> ExtendedMatchingResult:
    """Pairwise matching followed by group (sum) matching on the leftovers."""
    result, matchable, claims = _run_pairwise(invoices, payments, config, shape, tracer)
    extended = ExtendedMatchingResult(
        auto_matches=result.auto_matches,
        suggestions=result.suggestions,
        unmatched_invoices=result.unmatched_invoices,
        unmatched_payments=result.unmatched_payments,
        error=result.error,
    )
    if result.error or not options.enable_group_matching:
        return extended

    leftover_invoices = [inv for inv in matchable if inv.id not in claims.invoices]
    leftover_payments = [pay for pay in payments if pay.id not in claims.payments]
    extended.group_suggestions = find_group_matches(
        leftover_invoices,
        leftover_payments,
        config,
        max_months_to_group=options.max_months_to_group,
        shape=shape,
    )
    return extended
