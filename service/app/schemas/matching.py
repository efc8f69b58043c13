from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    CANCELED = "canceled"
    OVERDUE = "overdue"


class MatchType(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


MATCHABLE_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.OVERDUE, PaymentStatus.PARTIAL})
NON_MATCHABLE_KINDS = frozenset({"canceled"})


class Invoice(BaseModel):
    """An issued invoice awaiting payment."""
    model_config = ConfigDict(frozen=True)

    id: str
    invoice_number: str
    issue_date: date
    due_date: date
    gross_amount: Decimal
    net_amount: Decimal
    currency: str = "PLN"
    buyer_name: str
    buyer_tax_id: str | None = None
    buyer_subaccount: str | None = None
    seller_bank_account: str | None = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    invoice_kind: str | None = None

    @property
    def is_matchable(self) -> bool:
        """Only open invoices that were not canceled take part in matching."""
        return (
            self.payment_status in MATCHABLE_STATUSES
            and (self.invoice_kind or "").lower() not in NON_MATCHABLE_KINDS
        )


class Payment(BaseModel):
    """An incoming bank transfer."""
    model_config = ConfigDict(frozen=True)

    id: str
    transaction_date: date
    amount: Decimal = Field(gt=0)
    currency: str = "PLN"
    sender_name: str = ""
    sender_account: str | None = None
    sender_subaccount: str | None = None
    title: str = ""
    extended_title: str | None = None
    reference: str | None = None


class MatchBreakdown(BaseModel):
    """Per-criterion sub-scores, each in [0, 1]."""
    subaccount: float = 0.0
    amount: float = 0.0
    invoice_number: float = 0.0
    name: float = 0.0
    tax_id: float = 0.0
    date: float = 0.0


class MatchResult(BaseModel):
    invoice_id: str
    payment_id: str
    confidence: float = Field(ge=0, le=1)
    breakdown: MatchBreakdown
    reasons: list[str] = []


class GroupPeriod(BaseModel):
    """Inclusive month range, both ends formatted YYYY-MM."""
    start: str
    end: str


class GroupMatchSuggestion(BaseModel):
    """One payment settling several invoices of the same buyer."""
    invoices: list[Invoice] = Field(min_length=2)
    payment: Payment
    confidence: float = Field(ge=0, le=1)
    total_invoice_amount: Decimal
    buyer_name: str
    buyer_tax_id: str | None = None
    group_period: GroupPeriod
    reasons: list[str] = []


class CapacityError(BaseModel):
    code: str = "capacity_exceeded"
    message: str
    invoice_count: int
    payment_count: int
    max_input_invoices: int
    max_input_payments: int
    max_total_records: int
    max_comparisons: int


class MatchingResult(BaseModel):
    auto_matches: list[MatchResult] = []
    suggestions: list[MatchResult] = []
    unmatched_invoices: list[str] = []
    unmatched_payments: list[str] = []
    error: CapacityError | None = None


class ExtendedMatchingResult(MatchingResult):
    group_suggestions: list[GroupMatchSuggestion] = []


class ConfirmedMatch(BaseModel):
    """A match accepted by a user or by the auto-match pass."""
    invoice_id: str
    payment_id: str
    confidence_score: float = Field(ge=0, le=1)
    match_type: MatchType
    matched_at: datetime


# ── API payloads ───────────────────────────────────────────────────────

class MatchRequest(BaseModel):
    request_id: str
    invoices: list[Invoice] = []
    payments: list[Payment] = []
    confirmed: list[ConfirmedMatch] = []
    enable_group_matching: bool = True
    max_months_to_group: int | None = Field(None, ge=1)
    debug: bool = False


class MatchResponse(ExtendedMatchingResult):
    request_id: str


class ScoreRequest(BaseModel):
    invoice: Invoice
    payment: Payment
    explain: bool = False


class TraceEvent(BaseModel):
    event: str
    details: dict = {}


class ScoreResponse(BaseModel):
    result: MatchResult
    quality: str
    trace: list[TraceEvent] = []


class ConfirmRequest(BaseModel):
    result: MatchResult
    match_type: MatchType = MatchType.AUTO
    existing: list[ConfirmedMatch] = []


class ConfirmGroupRequest(BaseModel):
    suggestion: GroupMatchSuggestion
    existing: list[ConfirmedMatch] = []
