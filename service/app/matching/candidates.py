"""Candidate search: which payments are worth scoring for an invoice.

Payments are bucketed by (currency, amount floored to the bucket width).
An invoice looks at every occupied bucket overlapping its tolerance window,
found by bisecting the sorted bucket floors of its currency. Two
side indexes add payments the amount window would miss but the scorer
can still accept: same buyer sub-account, and a title citing the
invoice's number.
"""

from bisect import bisect_left, bisect_right
from collections import defaultdict
from decimal import ROUND_FLOOR, Decimal

from app.config import DEFAULT_CONFIG, MatchingConfig
from app.matching.invoice_numbers import DEFAULT_SHAPE, InvoiceNumberShape
from app.matching.normalizers import MIN_SUBACCOUNT_DIGITS, digits_only
from app.schemas.matching import Invoice, Payment


def _subaccount_key(account: str | None) -> str | None:
    # Short suffix so partial (suffix-of) sub-account matches share a key
    digits = digits_only(account)
    if len(digits) < MIN_SUBACCOUNT_DIGITS:
        return None
    return digits[-MIN_SUBACCOUNT_DIGITS:]


class PaymentIndex:
    """Read-only index over one snapshot of payments."""

    def __init__(
        self,
        payments: list[Payment],
        config: MatchingConfig = DEFAULT_CONFIG,
        shape: InvoiceNumberShape = DEFAULT_SHAPE,
    ):
        self.config = config
        self.shape = shape
        self._position: dict[str, int] = {}
        self._payments: list[Payment] = []
        self._buckets: dict[tuple[str, Decimal], list[Payment]] = defaultdict(list)
        self._by_subaccount: dict[tuple[str, str], list[Payment]] = defaultdict(list)
        self._by_number: dict[tuple[str, str], list[Payment]] = defaultdict(list)

        for payment in payments:
            if payment.id in self._position:
                continue
            self._position[payment.id] = len(self._payments)
            self._payments.append(payment)
            self._buckets[(payment.currency, self.bucket_floor(payment.amount))].append(payment)

            sub_key = _subaccount_key(payment.sender_subaccount)
            if sub_key:
                self._by_subaccount[(payment.currency, sub_key)].append(payment)

            for number_key in self._number_keys(payment):
                self._by_number[(payment.currency, number_key)].append(payment)

        floors: dict[str, set[Decimal]] = defaultdict(set)
        for currency, floor in self._buckets:
            floors[currency].add(floor)
        self._floors = {currency: sorted(values) for currency, values in floors.items()}

    def __len__(self) -> int:
        return len(self._payments)

    def bucket_floor(self, amount: Decimal) -> Decimal:
        size = self.config.bucket_size
        return (Decimal(amount) / size).to_integral_value(rounding=ROUND_FLOOR) * size

    def tolerance(self, amount: Decimal) -> Decimal:
        return max(Decimal(amount) * self.config.tolerance_ratio, self.config.min_tolerance)

    def _number_keys(self, payment: Payment) -> set[str]:
        text = self.shape.normalize_text(
            " ".join(t for t in (payment.title, payment.extended_title) if t)
        )
        keys = {digits_only(n) for n in self.shape.extract_all(text)}
        keys.add(digits_only(text))
        return {k for k in keys if len(k) >= 3}

    def by_amount(self, currency: str, amount: Decimal) -> list[Payment]:
        tolerance = self.tolerance(amount)
        low = self.bucket_floor(amount - tolerance)
        high = self.bucket_floor(amount + tolerance)
        floors = self._floors.get(currency, [])
        found = []
        for floor in floors[bisect_left(floors, low):bisect_right(floors, high)]:
            found.extend(self._buckets[(currency, floor)])
        return found

    def candidates(self, invoice: Invoice) -> list[Payment]:
        """Plausible payments for an invoice, in input order."""
        found = {p.id: p for p in self.by_amount(invoice.currency, invoice.gross_amount)}

        sub_key = _subaccount_key(invoice.buyer_subaccount)
        if sub_key:
            for payment in self._by_subaccount.get((invoice.currency, sub_key), ()):
                found.setdefault(payment.id, payment)

        number_key = digits_only(invoice.invoice_number)
        if len(number_key) >= 3:
            for payment in self._by_number.get((invoice.currency, number_key), ()):
                found.setdefault(payment.id, payment)

        return sorted(found.values(), key=lambda p: self._position[p.id])
