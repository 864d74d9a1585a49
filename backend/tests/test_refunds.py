"""
Refund schedules, refund approval and payment.
"""
from datetime import date
from decimal import Decimal

import pytest

from backoffice.core.exceptions import (
    AlreadyPaidError, ForbiddenError, InvalidAmountError, InvalidStateError, MissingFieldError,
    NotApprovedError, NotFoundError, ScheduleAlreadyExistsError
)
from backoffice.models import ApprovalStatus, CancellationStatus, Refund, RefundStatus
from backoffice.schemas import RefundMarkPaid, RefundScheduleCreate, PaymentMethodEnum
from backoffice.services.refund_service import RefundService, build_installments


class TestBuildInstallments:

    def test_remainder_goes_to_last_installment(self):
        installments = build_installments(Decimal("1000000"), 3, date(2024, 1, 1))
        assert [amount for _, _, amount in installments] == [
            Decimal("333333"), Decimal("333333"), Decimal("333334")
        ]

    @pytest.mark.parametrize("total,count", [
        ("1000000", 3), ("999999.99", 7), ("250000.50", 4), ("100", 1), ("2000", 3),
    ])
    def test_installments_sum_to_refundable(self, total, count):
        installments = build_installments(Decimal(total), count, date(2024, 1, 1))
        assert len(installments) == count
        assert sum(amount for _, _, amount in installments) == Decimal(total)
        assert [number for number, _, _ in installments] == list(range(1, count + 1))

    def test_monthly_due_dates(self):
        installments = build_installments(Decimal("500000"), 5, date(2024, 2, 1))
        assert [due for _, due, _ in installments] == [
            date(2024, 2, 1), date(2024, 3, 1), date(2024, 4, 1), date(2024, 5, 1), date(2024, 6, 1)
        ]
        assert all(amount == Decimal("100000") for _, _, amount in installments)

    def test_month_end_is_clamped(self):
        installments = build_installments(Decimal("300"), 3, date(2024, 1, 31))
        assert [due for _, due, _ in installments] == [
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)
        ]


class TestCreateSchedule:

    def test_creates_draft_pending_rows(self, db, approved_cancellation, admin):
        cancellation = approved_cancellation("500000.00")
        refunds = RefundService(db).create_schedule(
            RefundScheduleCreate(cancellation_id=cancellation.id, number_of_installments=5,
                                 start_date=date(2024, 2, 1)),
            admin
        )
        db.commit()

        assert len(refunds) == 5
        assert all(r.status == RefundStatus.PENDING.value for r in refunds)
        assert all(r.approval_status == ApprovalStatus.DRAFT.value for r in refunds)
        assert refunds[-1].due_date == date(2024, 6, 1)

    def test_second_schedule_is_rejected(self, db, approved_cancellation, admin):
        cancellation = approved_cancellation()
        data = RefundScheduleCreate(cancellation_id=cancellation.id, number_of_installments=3)
        RefundService(db).create_schedule(data, admin)
        db.commit()

        with pytest.raises(ScheduleAlreadyExistsError):
            RefundService(db).create_schedule(data, admin)
        assert db.query(Refund).count() == 3

    def test_installment_count_required(self, db, approved_cancellation, admin):
        cancellation = approved_cancellation()
        with pytest.raises(MissingFieldError):
            RefundService(db).create_schedule(
                RefundScheduleCreate(cancellation_id=cancellation.id), admin
            )

    def test_installment_count_positive(self, db, approved_cancellation, admin):
        cancellation = approved_cancellation()
        with pytest.raises(InvalidAmountError):
            RefundService(db).create_schedule(
                RefundScheduleCreate(cancellation_id=cancellation.id, number_of_installments=0), admin
            )

    def test_unknown_cancellation(self, db, admin):
        with pytest.raises(NotFoundError):
            RefundService(db).create_schedule(
                RefundScheduleCreate(cancellation_id=404, number_of_installments=2), admin
            )

    def test_cancellation_must_be_approved(self, db, approved_cancellation, admin):
        cancellation = approved_cancellation()
        cancellation.status = CancellationStatus.PENDING.value
        db.commit()

        with pytest.raises(InvalidStateError) as exc:
            RefundService(db).create_schedule(
                RefundScheduleCreate(cancellation_id=cancellation.id, number_of_installments=2), admin
            )
        assert exc.value.code == "CANCELLATION_NOT_APPROVED"

    def test_too_many_installments_for_amount(self, db, approved_cancellation, admin):
        cancellation = approved_cancellation("5.00")
        with pytest.raises(InvalidAmountError) as exc:
            RefundService(db).create_schedule(
                RefundScheduleCreate(cancellation_id=cancellation.id, number_of_installments=7), admin
            )
        assert exc.value.code == "INVALID_INSTALLMENTS"
        assert db.query(Refund).count() == 0

    def test_nothing_to_refund(self, db, approved_cancellation, admin):
        cancellation = approved_cancellation("0.00")
        with pytest.raises(InvalidAmountError):
            RefundService(db).create_schedule(
                RefundScheduleCreate(cancellation_id=cancellation.id, number_of_installments=2), admin
            )


@pytest.fixture
def schedule(db, approved_cancellation, admin):
    cancellation = approved_cancellation("300000.00")
    refunds = RefundService(db).create_schedule(
        RefundScheduleCreate(cancellation_id=cancellation.id, number_of_installments=3,
                             start_date=date(2024, 1, 1)),
        admin
    )
    db.commit()
    return cancellation, refunds


def _approve_fully(db, refund, account_manager, hof):
    service = RefundService(db)
    service.submit(refund.id, account_manager)
    service.approve(refund.id, account_manager)
    service.approve(refund.id, hof)
    db.commit()


class TestRefundApproval:

    def test_two_stage_approval(self, db, schedule, account_manager, hof):
        _, refunds = schedule
        _approve_fully(db, refunds[0], account_manager, hof)

        assert refunds[0].approval_status == ApprovalStatus.APPROVED.value
        assert len(refunds[0].approval_history) == 2
        assert refunds[1].approval_status == ApprovalStatus.DRAFT.value

    def test_wrong_role_is_forbidden(self, db, schedule, account_manager, hof):
        _, refunds = schedule
        RefundService(db).submit(refunds[0].id, account_manager)

        with pytest.raises(ForbiddenError):
            RefundService(db).approve(refunds[0].id, hof)

    def test_admin_may_approve_both_stages(self, db, schedule, admin):
        _, refunds = schedule
        service = RefundService(db)
        service.submit(refunds[0].id, admin)
        service.approve(refunds[0].id, admin)
        service.approve(refunds[0].id, admin)
        assert refunds[0].approval_status == ApprovalStatus.APPROVED.value

    def test_reject_records_reason(self, db, schedule, account_manager):
        _, refunds = schedule
        service = RefundService(db)
        service.submit(refunds[0].id, account_manager)
        service.reject(refunds[0].id, account_manager, "Bank details missing")
        db.commit()

        assert refunds[0].approval_status == ApprovalStatus.REJECTED.value
        assert refunds[0].rejection_reason == "Bank details missing"

    def test_reject_needs_pending_stage(self, db, schedule, account_manager):
        _, refunds = schedule
        with pytest.raises(InvalidStateError):
            RefundService(db).reject(refunds[0].id, account_manager, "Not yet submitted")

    def test_queue_is_admin_only(self, db, schedule, admin, account_manager):
        _, refunds = schedule
        RefundService(db).submit(refunds[0].id, admin)
        db.commit()

        assert [r.id for r in RefundService(db).get_approval_queue(admin)] == [refunds[0].id]
        with pytest.raises(ForbiddenError):
            RefundService(db).get_approval_queue(account_manager)


class TestMarkPaid:

    def test_requires_approval(self, db, schedule, account_manager):
        _, refunds = schedule
        with pytest.raises(NotApprovedError):
            RefundService(db).mark_paid(
                refunds[0].id, RefundMarkPaid(payment_method=PaymentMethodEnum.CASH), account_manager
            )

    def test_payment_retallies_cancellation(self, db, schedule, account_manager, hof):
        cancellation, refunds = schedule
        _approve_fully(db, refunds[0], account_manager, hof)

        RefundService(db).mark_paid(
            refunds[0].id,
            RefundMarkPaid(payment_method=PaymentMethodEnum.BANK_TRANSFER, paid_date=date(2024, 1, 5)),
            hof
        )
        db.commit()
        db.refresh(cancellation)

        assert refunds[0].status == RefundStatus.PAID.value
        assert refunds[0].paid_date == date(2024, 1, 5)
        assert cancellation.status == CancellationStatus.PARTIAL_REFUND.value
        assert cancellation.refunded_amount == Decimal("100000.00")
        assert cancellation.remaining_refund == Decimal("200000.00")

    def test_paying_every_installment_refunds_cancellation(self, db, schedule, account_manager, hof):
        cancellation, refunds = schedule
        for refund in refunds:
            _approve_fully(db, refund, account_manager, hof)
            RefundService(db).mark_paid(
                refund.id, RefundMarkPaid(payment_method=PaymentMethodEnum.CASH), hof
            )
        db.commit()
        db.refresh(cancellation)

        assert cancellation.status == CancellationStatus.REFUNDED.value
        assert cancellation.remaining_refund == Decimal("0")

    def test_cannot_pay_twice(self, db, schedule, account_manager, hof):
        _, refunds = schedule
        _approve_fully(db, refunds[0], account_manager, hof)
        data = RefundMarkPaid(payment_method=PaymentMethodEnum.CASH)
        RefundService(db).mark_paid(refunds[0].id, data, hof)

        with pytest.raises(AlreadyPaidError):
            RefundService(db).mark_paid(refunds[0].id, data, hof)

    def test_stats(self, db, schedule, account_manager, hof):
        _, refunds = schedule
        _approve_fully(db, refunds[0], account_manager, hof)
        RefundService(db).mark_paid(refunds[0].id, RefundMarkPaid(payment_method=PaymentMethodEnum.CASH), hof)
        RefundService(db).submit(refunds[1].id, account_manager)
        db.commit()

        stats = RefundService(db).get_stats()
        assert stats["total_refunds"] == 3
        assert stats["paid_refunds"] == 1
        assert stats["pending_refunds"] == 2
        assert stats["paid_amount"] == Decimal("100000.00")
        assert stats["total_amount"] == Decimal("300000.00")
        assert stats["pending_approvals"] == 1
