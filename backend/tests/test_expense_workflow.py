"""
Expense approval workflow and ledger posting.
"""
from decimal import Decimal

import pytest

from backoffice.core.exceptions import (
    InvalidAmountError, InvalidStateError, MissingFieldError, NotFoundError, UnauthorizedError
)
from backoffice.models import ApprovalStatus, AuditLog, Expense, ExpenseApproval, Ledger
from backoffice.schemas import ExpenseCreate, ExpenseUpdate, InstrumentDetails, PaymentMethodEnum
from backoffice.services.expense_service import ExpenseService
from backoffice.services.workflow import conditional_update


def _approve_to_hof(db, expense, account_manager):
    service = ExpenseService(db)
    service.submit(expense.id, account_manager)
    service.approve(expense.id, account_manager, "Checked against invoice")
    db.commit()


class TestCreateExpense:

    def test_created_as_draft_with_yearly_number(self, db, make_expense, account_manager):
        first = make_expense(account_manager)
        second = make_expense(account_manager)

        assert first.status == ApprovalStatus.DRAFT.value
        assert first.expense_number == "EXP-2024-00001"
        assert second.expense_number == "EXP-2024-00002"

    def test_amount_must_be_positive(self, db, category, account_manager):
        data = ExpenseCreate(
            category_id=category.id,
            amount=Decimal("0"),
            description="Nothing",
            payment_method=PaymentMethodEnum.CASH,
        )
        with pytest.raises(InvalidAmountError):
            ExpenseService(db).create(data, account_manager)

    def test_cheque_payment_requires_instrument(self, db, category, account_manager):
        data = ExpenseCreate(
            category_id=category.id,
            amount=Decimal("100"),
            description="Stationery",
            payment_method=PaymentMethodEnum.CHEQUE,
            instrument_details=InstrumentDetails(bank_name="HBL"),
        )
        with pytest.raises(MissingFieldError):
            ExpenseService(db).create(data, account_manager)

    def test_unknown_category(self, db, account_manager):
        data = ExpenseCreate(
            category_id=999,
            amount=Decimal("100"),
            description="Stationery",
            payment_method=PaymentMethodEnum.CASH,
        )
        with pytest.raises(NotFoundError) as exc:
            ExpenseService(db).create(data, account_manager)
        assert exc.value.code == "EXPENSE_CATEGORY_NOT_FOUND"

    def test_only_drafts_are_editable(self, db, make_expense, account_manager):
        expense = make_expense(account_manager)
        service = ExpenseService(db)

        service.update(expense.id, ExpenseUpdate(amount=Decimal("3000")), account_manager)
        assert expense.amount == Decimal("3000")

        service.submit(expense.id, account_manager)
        with pytest.raises(InvalidStateError):
            service.update(expense.id, ExpenseUpdate(amount=Decimal("10")), account_manager)
        with pytest.raises(InvalidStateError):
            service.delete(expense.id, account_manager)

    def test_switching_off_cheque_clears_instrument(self, db, make_expense, account_manager):
        expense = make_expense(
            account_manager,
            payment_method=PaymentMethodEnum.CHEQUE,
            instrument_details=InstrumentDetails(bank_name="HBL", cheque_number="4410"),
        )

        ExpenseService(db).update(
            expense.id, ExpenseUpdate(payment_method=PaymentMethodEnum.CASH), account_manager
        )
        db.commit()

        assert expense.payment_method == "Cash"
        assert expense.instrument_bank_name is None
        assert expense.instrument_cheque_number is None
        assert expense.instrument_cheque_date is None


class TestApprovalPath:

    def test_two_stage_approval_posts_balanced_ledger(self, db, make_expense, account_manager, hof):
        expense = make_expense(account_manager, amount="2500.00")
        _approve_to_hof(db, expense, account_manager)
        assert expense.status == ApprovalStatus.PENDING_HOF.value

        ExpenseService(db).approve(expense.id, hof)
        db.commit()

        assert expense.status == ApprovalStatus.APPROVED.value
        assert [h.role for h in expense.approval_history] == ["AccountManager", "HOF"]

        rows = db.query(Ledger).filter(
            Ledger.reference_model == "Expense", Ledger.reference_id == expense.id
        ).order_by(Ledger.id).all()
        assert len(rows) == 2
        assert sum(r.debit for r in rows) == sum(r.credit for r in rows) == Decimal("2500.00")
        assert rows[0].account == "Expense"
        assert rows[1].account == "Cash"

    def test_non_cash_payment_credits_bank(self, db, make_expense, account_manager, hof):
        expense = make_expense(account_manager, payment_method=PaymentMethodEnum.BANK_TRANSFER)
        _approve_to_hof(db, expense, account_manager)
        ExpenseService(db).approve(expense.id, hof)
        db.commit()

        credit = db.query(Ledger).filter(
            Ledger.reference_id == expense.id, Ledger.credit > 0
        ).one()
        assert credit.account == "Bank"

    def test_hof_cannot_approve_at_accounts_stage(self, db, make_expense, account_manager, hof):
        expense = make_expense(account_manager)
        ExpenseService(db).submit(expense.id, account_manager)
        db.commit()

        with pytest.raises(UnauthorizedError):
            ExpenseService(db).approve(expense.id, hof)

        db.rollback()
        assert db.get(Expense, expense.id).status == ApprovalStatus.PENDING_ACCOUNTS.value
        assert db.query(ExpenseApproval).count() == 0

    def test_admin_is_not_an_expense_stage_approver(self, db, make_expense, account_manager, admin):
        expense = make_expense(account_manager)
        ExpenseService(db).submit(expense.id, account_manager)

        with pytest.raises(UnauthorizedError):
            ExpenseService(db).approve(expense.id, admin)

    def test_approving_a_draft_is_invalid(self, db, make_expense, account_manager):
        expense = make_expense(account_manager)
        with pytest.raises(InvalidStateError):
            ExpenseService(db).approve(expense.id, account_manager)

    def test_submit_twice_is_invalid(self, db, make_expense, account_manager):
        expense = make_expense(account_manager)
        ExpenseService(db).submit(expense.id, account_manager)
        with pytest.raises(InvalidStateError):
            ExpenseService(db).submit(expense.id, account_manager)

    def test_no_ledger_rows_before_final_approval(self, db, make_expense, account_manager):
        expense = make_expense(account_manager)
        _approve_to_hof(db, expense, account_manager)
        assert db.query(Ledger).count() == 0

    def test_audit_trail_follows_transitions(self, db, make_expense, account_manager, hof):
        expense = make_expense(account_manager)
        _approve_to_hof(db, expense, account_manager)
        ExpenseService(db).approve(expense.id, hof)
        db.commit()

        actions = [row.action for row in db.query(AuditLog).filter(
            AuditLog.resource_type == "Expense", AuditLog.resource_id == expense.id
        ).order_by(AuditLog.id)]
        assert actions == ["CREATE", "SUBMIT", "APPROVE", "LEDGER_POSTED", "APPROVE"]


class TestReject:

    def test_reject_requires_remarks(self, db, make_expense, account_manager):
        expense = make_expense(account_manager)
        ExpenseService(db).submit(expense.id, account_manager)

        with pytest.raises(MissingFieldError) as exc:
            ExpenseService(db).reject(expense.id, account_manager, "  ")
        assert exc.value.code == "REMARKS_REQUIRED"

    def test_reject_at_hof_stage(self, db, make_expense, account_manager, hof):
        expense = make_expense(account_manager)
        _approve_to_hof(db, expense, account_manager)

        ExpenseService(db).reject(expense.id, hof, "Duplicate of last month's bill")
        db.commit()

        assert expense.status == ApprovalStatus.REJECTED.value
        last = expense.approval_history[-1]
        assert last.action == "Rejected"
        assert last.remarks == "Duplicate of last month's bill"

    def test_reject_terminal_expense_leaves_history_alone(self, db, make_expense, account_manager, hof):
        expense = make_expense(account_manager)
        _approve_to_hof(db, expense, account_manager)
        ExpenseService(db).approve(expense.id, hof)
        db.commit()
        history_before = len(expense.approval_history)

        with pytest.raises(InvalidStateError):
            ExpenseService(db).reject(expense.id, hof, "Too late")

        db.rollback()
        assert len(db.get(Expense, expense.id).approval_history) == history_before

    def test_reject_draft_is_invalid(self, db, make_expense, account_manager):
        expense = make_expense(account_manager)
        with pytest.raises(InvalidStateError):
            ExpenseService(db).reject(expense.id, account_manager, "Not needed")


class TestConcurrentTransition:

    def test_stale_status_loses(self, db, make_expense, account_manager):
        expense = make_expense(account_manager)
        ExpenseService(db).submit(expense.id, account_manager)
        db.commit()

        # Another request already moved it on
        conditional_update(db, Expense, expense.id, "status",
                           ApprovalStatus.PENDING_ACCOUNTS.value,
                           {"status": ApprovalStatus.PENDING_HOF.value})

        with pytest.raises(InvalidStateError):
            conditional_update(db, Expense, expense.id, "status",
                               ApprovalStatus.PENDING_ACCOUNTS.value,
                               {"status": ApprovalStatus.PENDING_HOF.value})


class TestQueueAndStats:

    def test_queue_follows_role(self, db, make_expense, account_manager, hof, admin):
        at_accounts = make_expense(account_manager)
        at_hof = make_expense(account_manager)
        service = ExpenseService(db)
        service.submit(at_accounts.id, account_manager)
        service.submit(at_hof.id, account_manager)
        service.approve(at_hof.id, account_manager)
        db.commit()

        assert [e.id for e in service.get_approval_queue(account_manager)] == [at_accounts.id]
        assert [e.id for e in service.get_approval_queue(hof)] == [at_hof.id]
        assert {e.id for e in service.get_approval_queue(admin)} == {at_accounts.id, at_hof.id}

    def test_stats_count_approved_by_category(self, db, make_expense, account_manager, hof):
        approved = make_expense(account_manager, amount="1000.00")
        make_expense(account_manager, amount="400.00")
        _approve_to_hof(db, approved, account_manager)
        ExpenseService(db).approve(approved.id, hof)
        db.commit()

        stats = ExpenseService(db).get_stats()
        assert stats["total_expenses"] == 2
        assert stats["total_amount"] == Decimal("1400.00")
        assert stats["approved_count"] == 1
        assert stats["approved_amount"] == Decimal("1000.00")
        assert stats["pending_approvals"] == 0
        assert stats["category_breakdown"][0]["category_name"] == "Utilities"
        assert stats["category_breakdown"][0]["total_amount"] == Decimal("1000.00")
