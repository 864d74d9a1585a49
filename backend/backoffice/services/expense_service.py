"""
Expense Service - Expenses and their two-stage approval
"""
from typing import Optional, List, Dict, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal
from datetime import date
import logging

from backoffice.core.exceptions import (
    DuplicateEntryError, InvalidAmountError, InvalidStateError, MissingFieldError, NotFoundError
)
from backoffice.models import (
    Expense, ExpenseApproval, ExpenseCategory, ApprovalStatus, PaymentMethod, User, UserRole,
    PENDING_APPROVAL_STATUSES
)
from backoffice.schemas import ExpenseCreate, ExpenseUpdate, ExpenseCategoryCreate, InstrumentDetails
from backoffice.services.audit_service import AuditService, AuditAction
from backoffice.services.ledger_service import LedgerService
from backoffice.services.workflow import ApprovalWorkflow, EXPENSE_STAGES

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (ApprovalStatus.DRAFT.value,)


class ExpenseCategoryService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, category_id: int) -> Optional[ExpenseCategory]:
        return self.db.query(ExpenseCategory).filter(
            ExpenseCategory.id == category_id,
            ExpenseCategory.is_active == True
        ).first()

    def get_all(self) -> List[ExpenseCategory]:
        return self.db.query(ExpenseCategory).filter(
            ExpenseCategory.is_active == True
        ).order_by(ExpenseCategory.name).all()

    def create(self, category_data: ExpenseCategoryCreate) -> ExpenseCategory:
        existing = self.db.query(ExpenseCategory).filter(
            func.lower(ExpenseCategory.name) == category_data.name.lower()
        ).first()
        if existing:
            raise DuplicateEntryError(f"Expense category '{category_data.name}' already exists")

        category = ExpenseCategory(
            name=category_data.name,
            description=category_data.description
        )
        self.db.add(category)
        self.db.flush()
        return category


class ExpenseService:
    def __init__(self, db: Session):
        self.db = db
        self.workflow = ApprovalWorkflow(
            db,
            model=Expense,
            history_model=ExpenseApproval,
            history_fk="expense_id",
            stages=EXPENSE_STAGES,
        )
        self.audit = AuditService(db)

    def get_by_id(self, expense_id: int) -> Optional[Expense]:
        return self.db.query(Expense).filter(
            Expense.id == expense_id,
            Expense.is_active == True
        ).first()

    def get_or_404(self, expense_id: int) -> Expense:
        expense = self.get_by_id(expense_id)
        if not expense:
            raise NotFoundError("Expense", expense_id)
        return expense

    def get_all(
        self,
        status: Optional[str] = None,
        category_id: Optional[int] = None,
        payment_method: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Expense], int]:
        """Filtered, paginated expenses, newest first"""
        query = self.db.query(Expense).filter(Expense.is_active == True)

        if status:
            query = query.filter(Expense.status == status)
        if category_id:
            query = query.filter(Expense.category_id == category_id)
        if payment_method:
            query = query.filter(Expense.payment_method == payment_method)
        if start_date:
            query = query.filter(Expense.expense_date >= start_date)
        if end_date:
            query = query.filter(Expense.expense_date <= end_date)

        total = query.count()
        expenses = query.order_by(
            Expense.expense_date.desc(), Expense.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()
        return expenses, total

    def get_next_number(self, on_date: Optional[date] = None) -> str:
        """Next expense number for the year: EXP-YYYY-NNNNN"""
        year = (on_date or date.today()).year
        prefix = f"EXP-{year}-"

        last_expense = self.db.query(Expense).filter(
            Expense.expense_number.like(f"{prefix}%")
        ).order_by(Expense.expense_number.desc()).first()

        if last_expense:
            try:
                num = int(last_expense.expense_number.replace(prefix, ""))
                return f"{prefix}{num + 1:05d}"
            except ValueError:
                pass

        return f"{prefix}00001"

    def _validate_amount(self, amount: Optional[Decimal]):
        if amount is None or amount <= 0:
            raise InvalidAmountError()

    def _validate_instrument(self, payment_method: str, instrument: Optional[InstrumentDetails]):
        if payment_method != PaymentMethod.CHEQUE.value:
            return
        if not instrument or not instrument.bank_name or not instrument.cheque_number:
            raise MissingFieldError(
                "instrument_details",
                "Bank name and cheque number are required for cheque payments"
            )

    def _validate_category(self, category_id: int):
        if not ExpenseCategoryService(self.db).get_by_id(category_id):
            raise NotFoundError("Expense category", category_id, code="EXPENSE_CATEGORY_NOT_FOUND")

    def create(self, expense_data: ExpenseCreate, user: User) -> Expense:
        """Create a draft expense"""
        self._validate_amount(expense_data.amount)
        self._validate_instrument(expense_data.payment_method.value, expense_data.instrument_details)
        self._validate_category(expense_data.category_id)

        expense_date = expense_data.expense_date or date.today()
        instrument = expense_data.instrument_details
        if expense_data.payment_method.value != PaymentMethod.CHEQUE.value:
            instrument = None

        expense = Expense(
            expense_number=self.get_next_number(expense_date),
            category_id=expense_data.category_id,
            amount=expense_data.amount,
            expense_date=expense_date,
            vendor=expense_data.vendor,
            description=expense_data.description,
            payment_method=expense_data.payment_method.value,
            instrument_bank_name=instrument.bank_name if instrument else None,
            instrument_cheque_number=instrument.cheque_number if instrument else None,
            instrument_cheque_date=instrument.cheque_date if instrument else None,
            notes=expense_data.notes,
            status=ApprovalStatus.DRAFT.value,
            created_by=user.id
        )
        self.db.add(expense)
        self.db.flush()

        self.audit.log(
            AuditAction.CREATE, "Expense", expense.id,
            description=f"Created expense {expense.expense_number}",
            new_values={"amount": expense.amount, "payment_method": expense.payment_method},
            user=user
        )
        return expense

    def update(self, expense_id: int, expense_data: ExpenseUpdate, user: User) -> Expense:
        """Update a draft expense"""
        expense = self.get_or_404(expense_id)
        if expense.status not in EDITABLE_STATUSES:
            raise InvalidStateError(
                f"Only draft expenses can be edited (status: {expense.status})"
            )

        update_data = expense_data.model_dump(exclude_unset=True)

        if "amount" in update_data:
            self._validate_amount(update_data["amount"])
        if update_data.get("category_id"):
            self._validate_category(update_data["category_id"])

        payment_method = update_data.get("payment_method")
        payment_method = payment_method.value if payment_method else expense.payment_method
        instrument = expense_data.instrument_details if "instrument_details" in update_data else InstrumentDetails(
            bank_name=expense.instrument_bank_name,
            cheque_number=expense.instrument_cheque_number,
            cheque_date=expense.instrument_cheque_date
        )
        self._validate_instrument(payment_method, instrument)
        if payment_method != PaymentMethod.CHEQUE.value:
            instrument = None

        old_values = {"amount": expense.amount, "payment_method": expense.payment_method}

        update_data.pop("instrument_details", None)
        for field, value in update_data.items():
            if value is None and field not in ("vendor", "notes"):
                continue
            if field == "payment_method":
                value = value.value
            setattr(expense, field, value)

        expense.instrument_bank_name = instrument.bank_name if instrument else None
        expense.instrument_cheque_number = instrument.cheque_number if instrument else None
        expense.instrument_cheque_date = instrument.cheque_date if instrument else None

        self.db.flush()
        self.audit.log(
            AuditAction.UPDATE, "Expense", expense.id,
            old_values=old_values,
            new_values={"amount": expense.amount, "payment_method": expense.payment_method},
            user=user
        )
        return expense

    def delete(self, expense_id: int, user: User) -> Expense:
        """Soft delete a draft expense"""
        expense = self.get_or_404(expense_id)
        if expense.status not in EDITABLE_STATUSES:
            raise InvalidStateError(
                f"Only draft expenses can be deleted (status: {expense.status})"
            )

        expense.is_active = False
        self.db.flush()
        self.audit.log(AuditAction.DELETE, "Expense", expense.id, user=user)
        return expense

    # ==================== WORKFLOW ====================

    def submit(self, expense_id: int, user: User) -> Expense:
        expense = self.get_or_404(expense_id)
        self.workflow.submit(expense)
        self.audit.log(
            AuditAction.SUBMIT, "Expense", expense.id,
            new_values={"status": expense.status}, user=user
        )
        return expense

    def approve(self, expense_id: int, user: User, remarks: Optional[str] = None) -> Expense:
        """
        Advance the expense one stage. Final approval posts the two ledger
        rows in the same transaction as the status change.
        """
        expense = self.get_or_404(expense_id)
        old_status = expense.status
        new_status = self.workflow.approve(expense, user, remarks)

        if new_status == ApprovalStatus.APPROVED.value:
            LedgerService(self.db).post_expense(expense, user.id)
            self.audit.log(
                AuditAction.LEDGER_POSTED, "Expense", expense.id,
                description=f"Ledger posted for {expense.expense_number}", user=user
            )

        self.audit.log(
            AuditAction.APPROVE, "Expense", expense.id,
            old_values={"status": old_status}, new_values={"status": new_status},
            user=user
        )
        return expense

    def reject(self, expense_id: int, user: User, remarks: Optional[str]) -> Expense:
        expense = self.get_or_404(expense_id)
        old_status = expense.status
        self.workflow.reject(expense, user, remarks)
        self.audit.log(
            AuditAction.REJECT, "Expense", expense.id,
            description=remarks,
            old_values={"status": old_status}, new_values={"status": expense.status},
            user=user
        )
        return expense

    def get_approval_queue(self, user: User) -> List[Expense]:
        """Expenses waiting on the caller's role"""
        if user.role == UserRole.ADMIN.value:
            statuses = list(PENDING_APPROVAL_STATUSES)
        elif user.role == UserRole.ACCOUNT_MANAGER.value:
            statuses = [ApprovalStatus.PENDING_ACCOUNTS.value]
        elif user.role == UserRole.HOF.value:
            statuses = [ApprovalStatus.PENDING_HOF.value]
        else:
            return []

        return self.db.query(Expense).filter(
            Expense.is_active == True,
            Expense.status.in_(statuses)
        ).order_by(Expense.created_at, Expense.id).all()

    # ==================== STATISTICS ====================

    def get_stats(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Dict:
        base = self.db.query(Expense).filter(Expense.is_active == True)
        if start_date:
            base = base.filter(Expense.expense_date >= start_date)
        if end_date:
            base = base.filter(Expense.expense_date <= end_date)

        by_status = []
        total_count = 0
        total_amount = Decimal("0")
        for status, count, amount in base.with_entities(
            Expense.status, func.count(Expense.id), func.coalesce(func.sum(Expense.amount), 0)
        ).group_by(Expense.status).all():
            amount = Decimal(str(amount))
            by_status.append({"status": status, "count": count, "total_amount": amount})
            total_count += count
            total_amount += amount

        approved = base.filter(Expense.status == ApprovalStatus.APPROVED.value)
        approved_count, approved_amount = approved.with_entities(
            func.count(Expense.id), func.coalesce(func.sum(Expense.amount), 0)
        ).one()

        category_breakdown = [
            {
                "category_id": category_id,
                "category_name": name,
                "count": count,
                "total_amount": Decimal(str(amount)),
            }
            for category_id, name, count, amount in approved.join(
                ExpenseCategory, Expense.category_id == ExpenseCategory.id
            ).with_entities(
                Expense.category_id,
                ExpenseCategory.name,
                func.count(Expense.id),
                func.coalesce(func.sum(Expense.amount), 0)
            ).group_by(Expense.category_id, ExpenseCategory.name).order_by(
                func.sum(Expense.amount).desc()
            ).all()
        ]

        pending_approvals = base.filter(Expense.status.in_(PENDING_APPROVAL_STATUSES)).count()

        return {
            "total_expenses": total_count,
            "total_amount": total_amount,
            "approved_count": approved_count,
            "approved_amount": Decimal(str(approved_amount)),
            "pending_approvals": pending_approvals,
            "by_status": by_status,
            "category_breakdown": category_breakdown,
        }
