"""Greedy global assignment of scored pairs.

Pairs are walked by confidence, highest first. High-confidence pairs claim
their invoice and payment; medium ones become suggestions without claiming
anything, so a human can choose among competing suggestions. This is not a
maximum-weight matching: auto-matches only fire where greedy and optimal
agree in practice.
"""

from dataclasses import dataclass, field

from app.config import DEFAULT_CONFIG, MatchingConfig
from app.schemas.matching import MatchResult


@dataclass
class ClaimSet:
    """Invoices and payments taken by auto-matches within one run."""

    invoices: set[str] = field(default_factory=set)
    payments: set[str] = field(default_factory=set)

    def is_claimed(self, invoice_id: str, payment_id: str) -> bool:
        return invoice_id in self.invoices or payment_id in self.payments

    def claim(self, invoice_id: str, payment_id: str) -> None:
        self.invoices.add(invoice_id)
        self.payments.add(payment_id)


def rank(results: list[MatchResult]) -> list[MatchResult]:
    # Stable sort: equal confidences keep scoring order, so reruns agree
    return sorted(results, key=lambda r: -r.confidence)


def resolve_assignments(
    results: list[MatchResult],
    claims: ClaimSet,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> tuple[list[MatchResult], list[MatchResult]]:
    """Split scored pairs into (auto_matches, suggestions), updating claims."""
    auto_matches: list[MatchResult] = []
    suggestions: list[MatchResult] = []

    for result in rank(results):
        if claims.is_claimed(result.invoice_id, result.payment_id):
            continue
        if result.confidence >= config.high_threshold:
            auto_matches.append(result)
            claims.claim(result.invoice_id, result.payment_id)
        elif result.confidence >= config.medium_threshold:
            suggestions.append(result)

    return auto_matches, suggestions[: config.max_suggestions]
