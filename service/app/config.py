"""Matching engine configuration from environment variables."""

import os
from dataclasses import dataclass, field
from decimal import Decimal

# Minimum candidate window; narrower windows would drop pairs that the
# exact-number rule still accepts at 10% amount divergence.
MIN_TOLERANCE_RATIO = Decimal("0.10")


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the general-case weighted sum. Must add up to 1."""

    amount: float = 0.35
    invoice_number: float = 0.30
    name: float = 0.15
    tax_id: float = 0.10
    date: float = 0.10

    def __post_init__(self):
        total = self.amount + self.invoice_number + self.name + self.tax_id + self.date
        if abs(total - 1.0) > 0.001:
            raise ValueError("Scoring weights must sum to 1, got %.3f" % total)
        if min(self.amount, self.invoice_number, self.name, self.tax_id, self.date) < 0:
            raise ValueError("Scoring weights must not be negative")


@dataclass(frozen=True)
class MatchingConfig:
    """Tunables for scoring, candidate search and the resource guard."""

    # Confidence thresholds
    high_threshold: float = 0.85
    medium_threshold: float = 0.65
    weights: ScoringWeights = field(default_factory=ScoringWeights)

    # Candidate index
    bucket_size: Decimal = Decimal("100")
    tolerance_ratio: Decimal = Decimal("0.10")
    min_tolerance: Decimal = Decimal("50")

    # Resource guard
    max_input_invoices: int = 2500
    max_input_payments: int = 2500
    max_total_records: int = 5000
    max_comparisons: int = 400_000
    max_suggestions: int = 500
    max_group_suggestions: int = 100
    warning_threshold: int = 200

    # Group matching
    max_months_to_group: int = 2

    def __post_init__(self):
        if not 0 < self.medium_threshold < self.high_threshold <= 1:
            raise ValueError(
                "Thresholds must satisfy 0 < medium < high <= 1, got medium=%s high=%s"
                % (self.medium_threshold, self.high_threshold)
            )
        if self.bucket_size <= 0:
            raise ValueError("bucket_size must be positive")
        if self.tolerance_ratio < MIN_TOLERANCE_RATIO:
            raise ValueError("tolerance_ratio must be at least %s" % MIN_TOLERANCE_RATIO)
        for name in ("max_input_invoices", "max_input_payments", "max_total_records",
                     "max_comparisons", "max_suggestions", "max_group_suggestions",
                     "max_months_to_group"):
            if getattr(self, name) < 1:
                raise ValueError("%s must be at least 1" % name)

    @classmethod
    def from_env(cls) -> "MatchingConfig":
        return cls(
            high_threshold=float(os.getenv("MATCHING_HIGH_THRESHOLD", "0.85")),
            medium_threshold=float(os.getenv("MATCHING_MEDIUM_THRESHOLD", "0.65")),
            weights=ScoringWeights(
                amount=float(os.getenv("MATCHING_WEIGHT_AMOUNT", "0.35")),
                invoice_number=float(os.getenv("MATCHING_WEIGHT_INVOICE_NUMBER", "0.30")),
                name=float(os.getenv("MATCHING_WEIGHT_NAME", "0.15")),
                tax_id=float(os.getenv("MATCHING_WEIGHT_TAX_ID", "0.10")),
                date=float(os.getenv("MATCHING_WEIGHT_DATE", "0.10")),
            ),
            bucket_size=Decimal(os.getenv("MATCHING_BUCKET_SIZE", "100")),
            tolerance_ratio=Decimal(os.getenv("MATCHING_TOLERANCE_RATIO", "0.10")),
            min_tolerance=Decimal(os.getenv("MATCHING_MIN_TOLERANCE", "50")),
            max_input_invoices=int(os.getenv("MATCHING_MAX_INPUT_INVOICES", "2500")),
            max_input_payments=int(os.getenv("MATCHING_MAX_INPUT_PAYMENTS", "2500")),
            max_total_records=int(os.getenv("MATCHING_MAX_TOTAL_RECORDS", "5000")),
            max_comparisons=int(os.getenv("MATCHING_MAX_COMPARISONS", "400000")),
            max_suggestions=int(os.getenv("MATCHING_MAX_SUGGESTIONS", "500")),
            max_group_suggestions=int(os.getenv("MATCHING_MAX_GROUP_SUGGESTIONS", "100")),
            warning_threshold=int(os.getenv("MATCHING_WARNING_THRESHOLD", "200")),
            max_months_to_group=int(os.getenv("MATCHING_MAX_MONTHS_TO_GROUP", "2")),
        )


DEFAULT_CONFIG = MatchingConfig()
