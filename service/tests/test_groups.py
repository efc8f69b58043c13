from datetime import date
from decimal import Decimal

import pytest

from app.matching.engine import GroupMatchingOptions, find_matches_extended
from app.matching.groups import buyer_key, find_group_matches, match_buyer, month_key


@pytest.fixture
def december(make_invoice):
    """Three ACME invoices of 1,100.00 issued in December 2025."""
    return [
        make_invoice(
            id="inv-%d" % n,
            invoice_number="PS %d/12/2025" % n,
            issue_date=date(2025, 12, n * 5),
            gross_amount=Decimal("1100.00"),
        )
        for n in (1, 2, 3)
    ]


def test_month_key():
    assert month_key(date(2025, 3, 9)) == "2025-03"


def test_buyer_key_prefers_tax_id(make_invoice):
    assert buyer_key(make_invoice(buyer_tax_id="PL 583-214-13-28")) == "tax:5832141328"
    assert buyer_key(make_invoice(buyer_name="ACME S.A.")) == "name:acme"


def test_one_payment_for_three_invoices(december, make_payment):
    payment = make_payment(id="pay-sum", amount=Decimal("3300.00"), title="Przelew za grudzien")
    result = find_matches_extended(december, [payment])

    assert result.auto_matches == []
    assert result.suggestions == []
    assert len(result.group_suggestions) == 1
    group = result.group_suggestions[0]
    assert [inv.id for inv in group.invoices] == ["inv-1", "inv-2", "inv-3"]
    assert group.payment.id == "pay-sum"
    assert group.total_invoice_amount == Decimal("3300.00")
    assert group.confidence >= 0.8
    assert group.confidence == 0.95
    assert group.group_period.start == group.group_period.end == "2025-12"
    # Group suggestions are never applied
    assert result.unmatched_invoices == ["inv-1", "inv-2", "inv-3"]
    assert result.unmatched_payments == ["pay-sum"]


def test_cited_numbers_are_reported(december, make_payment):
    payment = make_payment(amount=Decimal("3300.00"), title="PS 1/12/2025, PS 2/12/2025, PS 3/12/2025")
    result = find_matches_extended(december, [payment])
    assert result.auto_matches == []
    assert len(result.group_suggestions) == 1
    assert "3 invoice number(s) cited in the title" in result.group_suggestions[0].reasons


def test_total_within_tolerance(december, make_payment):
    payment = make_payment(amount=Decimal("3302.00"), title="Przelew")
    groups = find_group_matches(december, [payment])
    assert len(groups) == 1
    assert "Payment within 0.1% of the invoices' total" in groups[0].reasons


def test_total_outside_tolerance(december, make_payment):
    payment = make_payment(amount=Decimal("3400.00"), title="Przelew")
    assert find_group_matches(december, [payment]) == []


def test_unrelated_sender_is_not_grouped(december, make_payment):
    payment = make_payment(amount=Decimal("3300.00"), title="Przelew", sender_name="Someone Else")
    assert find_group_matches(december, [payment]) == []


def test_other_currency_is_not_grouped(december, make_payment):
    payment = make_payment(amount=Decimal("3300.00"), currency="EUR", title="Przelew")
    assert find_group_matches(december, [payment]) == []


def test_buyer_identified_by_tax_id(make_invoice, make_payment):
    invoices = [
        make_invoice(id="a", invoice_number="PS 1/12/2025", buyer_name="ACME Sp. z o.o.",
                     buyer_tax_id="5832141328", gross_amount=Decimal("1100.00")),
        make_invoice(id="b", invoice_number="PS 2/12/2025", buyer_name="ACME Polska",
                     buyer_tax_id="583-214-13-28", gross_amount=Decimal("1100.00")),
    ]
    payment = make_payment(amount=Decimal("2200.00"), title="NIP 5832141328", sender_name="Bank transfer")
    groups = find_group_matches(invoices, [payment])
    assert len(groups) == 1
    assert groups[0].buyer_tax_id == "5832141328"
    assert "Buyer tax ID found in the transfer" in groups[0].reasons


def test_buyer_identified_by_subaccount(make_invoice, make_payment):
    invoices = [make_invoice(buyer_subaccount="0712 1981 2874")]
    payment = make_payment(sender_name="Unknown", sender_subaccount="071219812874")
    buyer = match_buyer(invoices, payment)
    assert buyer is not None
    assert buyer.score == 1.0


def test_buyer_identified_by_words_in_title(make_invoice, make_payment):
    invoices = [make_invoice(buyer_name="Zakład Usług Ogólnobudowlanych Kowalski")]
    payment = make_payment(sender_name="Jan K.", title="Zaplata Kowalski Ogolnobudowlanych")
    buyer = match_buyer(invoices, payment)
    assert buyer is not None
    assert buyer.score == pytest.approx(0.65)


def test_consecutive_months_are_grouped(make_invoice, make_payment):
    invoices = [
        make_invoice(id="nov", invoice_number="PS 9/11/2025", issue_date=date(2025, 11, 20)),
        make_invoice(id="dec", invoice_number="PS 4/12/2025", issue_date=date(2025, 12, 5),
                     gross_amount=Decimal("1500.00")),
    ]
    payment = make_payment(amount=Decimal("2500.00"), title="Przelew")
    result = find_matches_extended(invoices, [payment])

    assert len(result.group_suggestions) == 1
    group = result.group_suggestions[0]
    assert group.confidence == pytest.approx(0.9)
    assert group.group_period.start == "2025-11"
    assert group.group_period.end == "2025-12"
    assert "Invoices span 2025-11 to 2025-12" in group.reasons


def test_multi_month_disabled_by_option(make_invoice, make_payment):
    invoices = [
        make_invoice(id="nov", invoice_number="PS 9/11/2025", issue_date=date(2025, 11, 20)),
        make_invoice(id="dec", invoice_number="PS 4/12/2025", issue_date=date(2025, 12, 5),
                     gross_amount=Decimal("1500.00")),
    ]
    payment = make_payment(amount=Decimal("2500.00"), title="Przelew")
    result = find_matches_extended(invoices, [payment], GroupMatchingOptions(max_months_to_group=1))
    assert result.group_suggestions == []


def test_gap_between_months_is_not_grouped(make_invoice, make_payment):
    invoices = [
        make_invoice(id="oct", invoice_number="PS 9/10/2025", issue_date=date(2025, 10, 20)),
        make_invoice(id="dec", invoice_number="PS 4/12/2025", issue_date=date(2025, 12, 5),
                     gross_amount=Decimal("1500.00")),
    ]
    payment = make_payment(amount=Decimal("2500.00"), title="Przelew")
    assert find_group_matches(invoices, [payment], max_months_to_group=3) == []


def test_payment_used_by_one_group_only(make_invoice, make_payment):
    invoices = [
        make_invoice(id="n1", invoice_number="PS 1/11/2025", issue_date=date(2025, 11, 3)),
        make_invoice(id="n2", invoice_number="PS 2/11/2025", issue_date=date(2025, 11, 4)),
        make_invoice(id="d1", invoice_number="PS 1/12/2025", issue_date=date(2025, 12, 3)),
        make_invoice(id="d2", invoice_number="PS 2/12/2025", issue_date=date(2025, 12, 4)),
    ]
    payment = make_payment(amount=Decimal("2000.00"), title="Przelew")
    groups = find_group_matches(invoices, [payment])
    assert len(groups) == 1
    assert [inv.id for inv in groups[0].invoices] == ["n1", "n2"]


def test_groups_use_only_invoices_left_by_pairwise(make_invoice, make_payment):
    invoices = [
        make_invoice(id="x", invoice_number="PS 1/12/2025", issue_date=date(2025, 12, 1)),
        make_invoice(id="y", invoice_number="PS 2/12/2025", issue_date=date(2025, 12, 2)),
        make_invoice(id="z", invoice_number="PS 3/12/2025", issue_date=date(2025, 12, 3)),
    ]
    payments = [
        make_payment(id="p1", title="PS 1/12/2025"),
        make_payment(id="p2", amount=Decimal("2000.00"), title="Przelew"),
    ]
    result = find_matches_extended(invoices, payments)
    assert [(m.invoice_id, m.payment_id) for m in result.auto_matches] == [("x", "p1")]
    assert len(result.group_suggestions) == 1
    group = result.group_suggestions[0]
    assert [inv.id for inv in group.invoices] == ["y", "z"]
    assert group.payment.id == "p2"
