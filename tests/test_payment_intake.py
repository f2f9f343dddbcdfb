from decimal import Decimal

import pytest

from errors import (
    BelowMinimumError,
    ExceedsContractError,
    InsufficientCreditError,
    InvalidStateError,
    MissingProofError,
    ValidationError,
)
from models import BillStatus, PaymentMethod
from services import notifications, payment_intake
from services.bill_ledger import get_bill
from services.credit_ledger import add_credit


def test_overpaying_past_contract_end_is_refused(db, three_month_tenancy, make_bill):
    bill = make_bill(three_month_tenancy)

    with pytest.raises(ExceedsContractError):
        payment_intake.submit(db, bill.id, bill.tenant_id, "35000", PaymentMethod.CASH)
    assert get_bill(db, bill.id).status == BillStatus.PENDING


def test_advance_within_contract_is_staged(db, three_month_tenancy, make_bill, notifier):
    bill = make_bill(three_month_tenancy)

    staged = payment_intake.submit(db, bill.id, bill.tenant_id, "25000", PaymentMethod.CASH)

    assert staged.status == BillStatus.PENDING_CONFIRMATION
    assert staged.amount_paid == Decimal("25000.00")
    assert staged.advance_amount == Decimal("15000.00")
    assert staged.months_covered == 3
    assert staged.payment_method == PaymentMethod.CASH

    db.commit()
    assert notifier.sent[-1][:2] == (bill.landlord_id, notifications.PAYMENT_CONFIRMATION_NEEDED)
    assert notifier.sent[-1][2]["months_covered"] == 3


def test_quote_reports_months_without_staging(db, three_month_tenancy, make_bill):
    bill = make_bill(three_month_tenancy)

    q = payment_intake.quote(db, bill.id, bill.tenant_id, "25000", PaymentMethod.GATEWAY)

    assert q.owed == Decimal("10000.00")
    assert q.months_covered == 3
    assert q.rent_portion == Decimal("25000.00")
    assert q.limits.max_months == 3
    assert get_bill(db, bill.id).status == BillStatus.PENDING


@pytest.mark.parametrize("amount", ["0", "9999.99"])
def test_partial_payment_is_refused(db, three_month_tenancy, make_bill, amount):
    bill = make_bill(three_month_tenancy)

    with pytest.raises(BelowMinimumError):
        payment_intake.submit(db, bill.id, bill.tenant_id, amount, PaymentMethod.CASH)
    assert get_bill(db, bill.id).status == BillStatus.PENDING


def test_credit_lowers_the_minimum(db, three_month_tenancy, make_bill):
    bill = make_bill(three_month_tenancy)
    add_credit(db, bill.tenant_id, bill.tenancy_id, "3000")

    with pytest.raises(BelowMinimumError):
        payment_intake.submit(db, bill.id, bill.tenant_id, "6999.99", PaymentMethod.CASH)

    staged = payment_intake.submit(db, bill.id, bill.tenant_id, "7000", PaymentMethod.CASH)
    assert staged.credit_applied == Decimal("3000.00")
    assert staged.amount_paid == Decimal("10000.00")
    assert staged.advance_amount == Decimal("0.00")


def test_bill_covered_by_credit_only_accepts_credit(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy(), rent_amount=Decimal("5000"))
    add_credit(db, bill.tenant_id, bill.tenancy_id, "5000")

    with pytest.raises(InvalidStateError):
        payment_intake.submit(db, bill.id, bill.tenant_id, "5000", PaymentMethod.CASH)
    assert get_bill(db, bill.id).status == BillStatus.PENDING

    paid = payment_intake.submit(db, bill.id, bill.tenant_id, "0", PaymentMethod.CREDIT)
    assert paid.status == BillStatus.PAID
    assert paid.payment_method == PaymentMethod.CREDIT


def test_credit_method_needs_enough_credit(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())
    add_credit(db, bill.tenant_id, bill.tenancy_id, "100")

    with pytest.raises(InsufficientCreditError):
        payment_intake.quote(db, bill.id, bill.tenant_id, "0", PaymentMethod.CREDIT)


def test_qr_payment_without_reference_or_proof(db, three_month_tenancy, make_bill):
    bill = make_bill(three_month_tenancy)

    with pytest.raises(MissingProofError):
        payment_intake.submit(db, bill.id, bill.tenant_id, "10000", PaymentMethod.QR_CODE, reference_number="  ")
    assert get_bill(db, bill.id).status == BillStatus.PENDING


def test_qr_payment_with_reference(db, three_month_tenancy, make_bill):
    bill = make_bill(three_month_tenancy)

    staged = payment_intake.submit(
        db, bill.id, bill.tenant_id, "10000", PaymentMethod.QR_CODE, reference_number=" GC-123 "
    )

    assert staged.status == BillStatus.PENDING_CONFIRMATION
    assert staged.reference_number == "GC-123"


def test_qr_payment_with_proof_only(db, three_month_tenancy, make_bill):
    bill = make_bill(three_month_tenancy)
    url = "https://acct.blob.core.windows.net/payment-proofs/7/receipt.png"

    staged = payment_intake.submit(db, bill.id, bill.tenant_id, "10000", PaymentMethod.QR_CODE, proof_url=url)

    assert staged.proof_url == url


def test_one_time_charges_come_off_before_rent_months(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy(), rent_amount=Decimal("10000"), water=Decimal("500"))

    staged = payment_intake.submit(db, bill.id, bill.tenant_id, "20500", PaymentMethod.CASH)

    assert staged.months_covered == 2
    assert staged.advance_amount == Decimal("10000.00")


def test_utility_only_bill_covers_one_month(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy(), water=Decimal("450"))

    staged = payment_intake.submit(db, bill.id, bill.tenant_id, "450", PaymentMethod.CASH)

    assert staged.months_covered == 1
    assert staged.advance_amount == Decimal("0.00")


def test_gateway_payments_are_not_submitted_directly(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())

    with pytest.raises(ValidationError):
        payment_intake.submit(db, bill.id, bill.tenant_id, "10000", PaymentMethod.GATEWAY)


def test_other_tenants_bill(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())

    with pytest.raises(ValidationError):
        payment_intake.submit(db, bill.id, bill.tenant_id + 1, "10000", PaymentMethod.CASH)


def test_staged_bill_cannot_be_submitted_again(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())
    payment_intake.submit(db, bill.id, bill.tenant_id, "10000", PaymentMethod.CASH)

    with pytest.raises(InvalidStateError):
        payment_intake.submit(db, bill.id, bill.tenant_id, "10000", PaymentMethod.CASH)


def test_gateway_payment_recorded_once(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())

    first = payment_intake.record_gateway_payment(db, bill.id, "chk-1", "10000")
    again = payment_intake.record_gateway_payment(db, bill.id, "chk-1", "10000")

    assert first is again
    assert again.status == BillStatus.PENDING_CONFIRMATION
    assert again.gateway_transaction_id == "chk-1"
    assert again.payment_method == PaymentMethod.GATEWAY


def test_gateway_transaction_belongs_to_one_bill(db, make_tenancy, make_bill):
    tenancy = make_tenancy()
    first = make_bill(tenancy)
    second = make_bill(tenancy)
    payment_intake.record_gateway_payment(db, first.id, "chk-1", "10000")

    with pytest.raises(ValidationError):
        payment_intake.record_gateway_payment(db, second.id, "chk-1", "10000")
