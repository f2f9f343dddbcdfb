from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import update

from errors import InsufficientCreditError, InvalidStateError, NotFoundError, ValidationError
from models import Bill, BillStatus, Payment, PaymentMethod
from services import notifications, payment_intake, settlement
from services.bill_ledger import add_months, cancel, get_bill
from services.credit_ledger import add_credit, get_credit_balance
from services.ledger_service import GENESIS_HASH, list_payments, verify_full_chain, verify_payment_record
from services.settlement import advance_due_dates
from services.tenancy_directory import TenancyDirectory


def _stage(db, bill, amount, method=PaymentMethod.CASH, **kwargs):
    return payment_intake.submit(db, bill.id, bill.tenant_id, amount, method, **kwargs)


def test_advance_payment_creates_paid_future_months(db, three_month_tenancy, make_bill, today):
    bill = make_bill(three_month_tenancy)
    _stage(db, bill, "30000")

    result = settlement.confirm(db, bill.id, landlord_id=bill.landlord_id)

    assert result.bill.status == BillStatus.PAID
    assert result.months_covered == 3
    assert result.credit_added == Decimal("0")
    assert get_credit_balance(db, bill.tenant_id, bill.tenancy_id) == Decimal("0.00")

    payment = result.payment
    assert payment.amount == Decimal("30000.00")
    assert payment.months_covered == 3
    assert bill.payment_id == payment.id

    advances = result.advance_bills
    assert [b.due_date for b in advances] == [add_months(today, 1), add_months(today, 2)]
    assert [b.description for b in advances] == [
        "Advance Payment (Month 2 of 3)",
        "Advance Payment (Month 3 of 3)",
    ]
    for advance in advances:
        assert advance.status == BillStatus.PAID
        assert advance.is_advance_payment is True
        assert advance.payment_id == payment.id
        assert advance.rent_amount == Decimal("10000.00")
        assert advance.due_date <= three_month_tenancy.contract_end_date


def test_confirm_pending_bill_is_cash_payment(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy(), rent_amount=Decimal("10000"), water=Decimal("350"))

    result = settlement.confirm(db, bill.id)

    assert result.bill.payment_method == PaymentMethod.CASH
    assert result.bill.amount_paid == Decimal("10350.00")
    assert result.payment.amount == Decimal("10350.00")
    assert result.advance_bills == []


def test_second_confirm_fails_and_keeps_one_payment(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())
    settlement.confirm(db, bill.id)

    with pytest.raises(InvalidStateError):
        settlement.confirm(db, bill.id)
    assert db.query(Payment).filter(Payment.bill_id == bill.id).count() == 1


def test_confirm_by_other_landlord(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())

    with pytest.raises(ValidationError):
        settlement.confirm(db, bill.id, landlord_id=bill.landlord_id + 1)
    assert get_bill(db, bill.id).status == BillStatus.PENDING


def test_confirm_cancelled_bill(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())
    cancel(db, bill.id)

    with pytest.raises(InvalidStateError):
        settlement.confirm(db, bill.id)


def test_advance_past_contract_end_becomes_credit(db, make_tenancy, make_bill, today):
    end = add_months(today, 2)
    tenancy = make_tenancy(contract_end_date=end)
    bill = make_bill(tenancy, due_date=end)
    _stage(db, bill, "20000")

    result = settlement.confirm(db, bill.id)

    assert result.advance_bills == []
    assert result.credit_added == Decimal("10000.00")
    assert get_credit_balance(db, bill.tenant_id, bill.tenancy_id) == Decimal("10000.00")
    assert db.query(Bill).filter(Bill.due_date > end).count() == 0


def test_advance_due_dates_stop_at_contract_end(db, make_tenancy, make_bill, today):
    tenancy = make_tenancy(contract_end_date=add_months(today, 2))
    bill = make_bill(tenancy)
    snapshot = TenancyDirectory(db).get_tenancy(tenancy.id)

    dates = advance_due_dates(bill, snapshot, Decimal("50000"))

    assert dates == [add_months(today, 1), add_months(today, 2)]


def test_advance_counts_whole_months_only(db, make_tenancy, make_bill, today):
    bill = make_bill(make_tenancy())
    snapshot = TenancyDirectory(db).get_tenancy(bill.tenancy_id)

    assert len(advance_due_dates(bill, snapshot, Decimal("15000"))) == 1
    assert len(advance_due_dates(bill, snapshot, Decimal("10000"))) == 1
    assert advance_due_dates(bill, snapshot, Decimal("9999.99")) == []
    assert advance_due_dates(bill, snapshot, Decimal("0")) == []


def test_small_overpayment_becomes_credit(db, make_tenancy, make_bill, today):
    tenancy = make_tenancy(contract_end_date=add_months(today, 12))
    bill = make_bill(tenancy)
    _stage(db, bill, "10001.00")

    result = settlement.confirm(db, bill.id)

    assert result.advance_bills == []
    assert result.payment.amount == Decimal("10001.00")
    assert result.credit_added == Decimal("1.00")
    assert get_credit_balance(db, bill.tenant_id, bill.tenancy_id) == Decimal("1.00")


def test_fractional_month_of_advance_becomes_credit(db, three_month_tenancy, make_bill, today):
    bill = make_bill(three_month_tenancy)
    _stage(db, bill, "25000")

    result = settlement.confirm(db, bill.id)

    assert [b.due_date for b in result.advance_bills] == [add_months(today, 1)]
    assert result.payment.months_covered == 2
    assert result.payment.amount == Decimal("25000.00")
    assert result.credit_added == Decimal("5000.00")


def test_staged_credit_is_drawn_on_confirm(db, three_month_tenancy, make_bill):
    bill = make_bill(three_month_tenancy)
    add_credit(db, bill.tenant_id, bill.tenancy_id, "3000")
    _stage(db, bill, "7000")

    # Still held until the landlord confirms.
    assert get_credit_balance(db, bill.tenant_id, bill.tenancy_id) == Decimal("3000.00")

    result = settlement.confirm(db, bill.id)

    assert get_credit_balance(db, bill.tenant_id, bill.tenancy_id) == Decimal("0.00")
    assert result.payment.amount == Decimal("10000.00")
    assert result.credit_added == Decimal("0")


def test_reject_and_resubmit_without_limit(db, three_month_tenancy, make_bill, notifier):
    bill = make_bill(three_month_tenancy)

    for _ in range(3):
        _stage(db, bill, "10000")
        rejected = settlement.reject(db, bill.id, landlord_id=bill.landlord_id, reason="No cash received")
        assert rejected.status == BillStatus.REJECTED

    _stage(db, bill, "10000")
    result = settlement.confirm(db, bill.id)

    assert result.bill.status == BillStatus.PAID
    assert db.query(Payment).count() == 1

    db.commit()
    rejections = [p for _, e, p in notifier.sent if e == notifications.PAYMENT_REJECTED]
    assert len(rejections) == 3
    assert rejections[0] == {"bill_id": bill.id, "amount": "10000.00", "reason": "No cash received"}


def test_reject_touches_no_payment_or_credit(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())
    add_credit(db, bill.tenant_id, bill.tenancy_id, "2000")
    _stage(db, bill, "8000")

    settlement.reject(db, bill.id)

    assert db.query(Payment).count() == 0
    assert get_credit_balance(db, bill.tenant_id, bill.tenancy_id) == Decimal("2000.00")


def test_reject_requires_staged_payment(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())

    with pytest.raises(InvalidStateError):
        settlement.reject(db, bill.id)


def test_pay_with_credit_reduces_balance_by_total(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy(), rent_amount=Decimal("4000"), wifi=Decimal("1000"))
    add_credit(db, bill.tenant_id, bill.tenancy_id, "7250")

    result = settlement.pay_with_credit(db, bill.id, bill.tenant_id)

    assert get_credit_balance(db, bill.tenant_id, bill.tenancy_id) == Decimal("2250.00")
    assert result.bill.status == BillStatus.PAID
    assert result.bill.reference_number == "CREDIT_APPLIED"
    assert result.payment.method == PaymentMethod.CREDIT
    assert result.payment.amount == Decimal("5000.00")
    assert result.credit_added == Decimal("0")


def test_pay_with_credit_insufficient(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())
    add_credit(db, bill.tenant_id, bill.tenancy_id, "9999.99")

    with pytest.raises(InsufficientCreditError):
        settlement.pay_with_credit(db, bill.id, bill.tenant_id)
    assert get_credit_balance(db, bill.tenant_id, bill.tenancy_id) == Decimal("9999.99")
    assert get_bill(db, bill.id).status == BillStatus.PENDING


def test_pay_with_credit_after_rejection(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())
    _stage(db, bill, "10000")
    settlement.reject(db, bill.id)
    add_credit(db, bill.tenant_id, bill.tenancy_id, "10000")

    result = settlement.pay_with_credit(db, bill.id, bill.tenant_id)

    assert result.bill.status == BillStatus.PAID
    assert result.bill.advance_amount == Decimal("0")
    assert get_credit_balance(db, bill.tenant_id, bill.tenancy_id) == Decimal("0.00")


def test_pay_with_credit_on_staged_bill(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())
    add_credit(db, bill.tenant_id, bill.tenancy_id, "20000")
    payment_intake.record_gateway_payment(db, bill.id, "chk-9", "10000")

    with pytest.raises(InvalidStateError):
        settlement.pay_with_credit(db, bill.id, bill.tenant_id)


def test_gateway_replay_creates_nothing_new(db, make_tenancy, make_bill, today):
    end = add_months(today, 2)
    tenancy = make_tenancy(contract_end_date=end)
    bill = make_bill(tenancy, due_date=end)
    payment_intake.record_gateway_payment(db, bill.id, "chk-42", "20000")

    first = settlement.confirm_gateway(db, "chk-42")
    replay = settlement.confirm_gateway(db, "chk-42")

    assert first.replayed is False
    assert first.credit_added == Decimal("10000.00")
    assert replay.replayed is True
    assert replay.payment.id == first.payment.id
    assert db.query(Payment).count() == 1
    assert get_credit_balance(db, bill.tenant_id, bill.tenancy_id) == Decimal("10000.00")


def test_gateway_replay_returns_advance_bills(db, make_tenancy, make_bill):
    bill = make_bill(make_tenancy())
    payment_intake.record_gateway_payment(db, bill.id, "chk-7", "30000")

    first = settlement.confirm_gateway(db, "chk-7")
    replay = settlement.confirm_gateway(db, "chk-7")

    assert len(first.advance_bills) == 2
    assert [b.id for b in replay.advance_bills] == [b.id for b in first.advance_bills]
    assert replay.payment.gateway_transaction_id == "chk-7"


def test_confirm_unknown_gateway_transaction(db):
    with pytest.raises(NotFoundError):
        settlement.confirm_gateway(db, "missing")


def test_payments_form_a_verifiable_hash_chain(db, make_tenancy, make_bill):
    tenancy = make_tenancy()
    first = settlement.confirm(db, make_bill(tenancy).id).payment
    second = settlement.confirm(db, make_bill(tenancy).id).payment

    assert first.previous_hash == GENESIS_HASH
    assert second.previous_hash == first.transaction_hash
    assert verify_full_chain(db) == (True, "Full chain verification passed", 2)
    assert verify_payment_record(db, second.bill_id) == (True, "Verification passed")


def test_tampered_payment_fails_verification(db, make_tenancy, make_bill):
    payment = settlement.confirm(db, make_bill(make_tenancy()).id).payment
    db.execute(
        update(Payment)
        .where(Payment.id == payment.id)
        .values(amount=Decimal("1.00"))
        .execution_options(synchronize_session=False)
    )
    db.expire_all()

    valid, message = verify_payment_record(db, payment.bill_id)
    assert valid is False
    assert message.startswith("Hash mismatch")
    assert verify_full_chain(db)[0] is False


def test_confirmation_notifies_only_after_commit(db, make_tenancy, make_bill, notifier):
    bill = make_bill(make_tenancy())
    db.commit()
    notifier.sent.clear()

    settlement.confirm(db, bill.id)
    assert notifier.sent == []

    db.commit()
    assert notifier.event_types == [notifications.PAYMENT_CONFIRMED]
    assert notifier.sent[0][2]["months_covered"] == 1


def test_rolled_back_confirmation_sends_nothing(db, make_tenancy, make_bill, notifier):
    bill = make_bill(make_tenancy())
    db.commit()
    notifier.sent.clear()

    settlement.confirm(db, bill.id)
    db.rollback()
    db.commit()

    assert notifier.sent == []
    assert get_bill(db, bill.id).status == BillStatus.PENDING
    assert db.query(Payment).count() == 0


def test_credit_added_is_announced(db, make_tenancy, make_bill, today, notifier):
    end = add_months(today, 2)
    bill = make_bill(make_tenancy(contract_end_date=end), due_date=end)
    _stage(db, bill, "20000")
    settlement.confirm(db, bill.id)
    db.commit()

    credit_events = [p for _, e, p in notifier.sent if e == notifications.CREDIT_ADDED]
    assert credit_events == [{"tenancy_id": bill.tenancy_id, "amount": "10000.00", "balance": "10000.00"}]


def test_failing_dispatcher_never_breaks_settlement(db, make_tenancy, make_bill):
    class Exploding(notifications.NotificationDispatcher):
        def _send(self, recipient_id, event_type, payload):
            raise RuntimeError("smtp down")

    notifications.bind_dispatcher(db, Exploding(webhook_url="http://notify.invalid"))
    bill = make_bill(make_tenancy())
    settlement.confirm(db, bill.id)

    db.commit()

    assert get_bill(db, bill.id).status == BillStatus.PAID


def test_list_payments_filters_by_settlement_day(db, make_tenancy, make_bill):
    tenancy = make_tenancy()
    march = settlement.confirm(db, make_bill(tenancy).id).payment
    april = settlement.confirm(db, make_bill(tenancy).id).payment
    db.execute(update(Payment).where(Payment.id == march.id).values(created_at=datetime(2026, 3, 31, 23, 59)))
    db.execute(update(Payment).where(Payment.id == april.id).values(created_at=datetime(2026, 4, 1, 0, 0)))
    db.expire_all()

    assert [p.id for p in list_payments(db, date_to=date(2026, 3, 31))] == [march.id]
    assert [p.id for p in list_payments(db, date_from=date(2026, 4, 1))] == [april.id]
    assert [p.id for p in list_payments(db, tenancy_id=tenancy.id)] == [april.id, march.id]
    assert list_payments(db, tenant_id=tenancy.tenant_id + 1) == []
