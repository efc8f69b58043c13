import time
from decimal import Decimal

from app.config import MatchingConfig
from app.matching.candidates import PaymentIndex


def _ids(payments):
    return [p.id for p in payments]


def test_bucket_floor():
    index = PaymentIndex([])
    assert index.bucket_floor(Decimal("1234.56")) == Decimal("1200")
    assert index.bucket_floor(Decimal("99.99")) == Decimal("0")


def test_tolerance_has_absolute_floor():
    index = PaymentIndex([])
    assert index.tolerance(Decimal("1000")) == Decimal("100")
    assert index.tolerance(Decimal("100")) == Decimal("50")


def test_candidates_by_amount_window(make_invoice, make_payment):
    payments = [
        make_payment(id="p-905", amount=Decimal("905.00"), title="x"),
        make_payment(id="p-1250", amount=Decimal("1250.00"), title="x"),
        make_payment(id="p-eur", amount=Decimal("1000.00"), currency="EUR", title="x"),
        make_payment(id="p-1100", amount=Decimal("1100.00"), title="x"),
    ]
    index = PaymentIndex(payments)
    assert _ids(index.candidates(make_invoice())) == ["p-905", "p-1100"]


def test_ten_percent_divergence_is_never_pruned(make_invoice, make_payment):
    payments = [
        make_payment(id="low", amount=Decimal("900.00"), title="x"),
        make_payment(id="high", amount=Decimal("1100.00"), title="x"),
    ]
    index = PaymentIndex(payments)
    assert _ids(index.candidates(make_invoice())) == ["low", "high"]


def test_small_amounts_use_minimum_tolerance(make_invoice, make_payment):
    index = PaymentIndex([make_payment(id="p", amount=Decimal("95.00"), title="x")])
    invoice = make_invoice(gross_amount=Decimal("50.00"))
    assert _ids(index.candidates(invoice)) == ["p"]


def test_subaccount_side_index(make_invoice, make_payment):
    payments = [
        make_payment(id="far", amount=Decimal("30.00"), title="x", sender_subaccount="0712 1981 2874"),
    ]
    index = PaymentIndex(payments)
    invoice = make_invoice(buyer_subaccount="61 1090 1014 0000 0712 1981 2874")
    assert _ids(index.candidates(invoice)) == ["far"]


def test_invoice_number_side_index(make_invoice, make_payment):
    payments = [
        make_payment(id="cited", amount=Decimal("20.00"), title="Zaliczka PS 1 7/12/2025"),
        make_payment(id="other", amount=Decimal("20.00"), title="PS 18/12/2025"),
    ]
    index = PaymentIndex(payments)
    assert _ids(index.candidates(make_invoice())) == ["cited"]


def test_candidates_keep_input_order_and_skip_duplicate_ids(make_invoice, make_payment):
    payments = [
        make_payment(id="b", amount=Decimal("20.00"), title="PS 17/12/2025"),
        make_payment(id="a", amount=Decimal("1000.00"), title="x"),
        make_payment(id="b", amount=Decimal("1000.00"), title="x"),
    ]
    index = PaymentIndex(payments)
    assert len(index) == 2
    assert _ids(index.candidates(make_invoice())) == ["b", "a"]


def test_custom_bucket_size(make_invoice, make_payment):
    config = MatchingConfig(bucket_size=Decimal("1000"))
    index = PaymentIndex([make_payment(id="p", amount=Decimal("1090.00"), title="x")], config)
    assert index.bucket_floor(Decimal("1090.00")) == Decimal("1000")
    assert _ids(index.candidates(make_invoice())) == ["p"]


def test_large_amounts_only_visit_occupied_buckets(make_invoice, make_payment):
    payments = [
        make_payment(id="small", amount=Decimal("1000.00"), title="x"),
        make_payment(id="huge", amount=Decimal("480000000.00"), title="x"),
    ]
    index = PaymentIndex(payments)
    invoices = [make_invoice(id="inv-%d" % n, gross_amount=Decimal("500000000.00")) for n in range(50)]

    start = time.monotonic()
    found = [index.candidates(invoice) for invoice in invoices]
    elapsed_ms = (time.monotonic() - start) * 1000

    assert all(_ids(c) == ["huge"] for c in found)
    assert elapsed_ms < 200, f"Candidate search took {elapsed_ms:.1f}ms"
