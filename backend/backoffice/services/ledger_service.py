"""
Ledger Service - Double-entry postings
"""
from typing import Optional, List, Dict
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal
from datetime import date
import logging

from backoffice.models import (
    Ledger, Expense, AccountType, TransactionType, PaymentMethod
)

logger = logging.getLogger(__name__)

EXPENSE_ACCOUNT = "Expense"
CASH_ACCOUNT = "Cash"
BANK_ACCOUNT = "Bank"


class LedgerService:
    def __init__(self, db: Session):
        self.db = db

    def post_expense(self, expense: Expense, user_id: Optional[int] = None) -> List[Ledger]:
        """
        Post an approved expense: debit Expense, credit Cash (cash payments)
        or Bank (everything else). Rows are flushed in the caller's
        transaction and committed together with the approval.
        """
        payment_account = CASH_ACCOUNT if expense.payment_method == PaymentMethod.CASH.value else BANK_ACCOUNT

        debit_entry = Ledger(
            transaction_date=expense.expense_date,
            account=EXPENSE_ACCOUNT,
            account_type=AccountType.EXPENSE.value,
            debit=expense.amount,
            credit=Decimal("0.00"),
            transaction_type=TransactionType.EXPENSE.value,
            reference_model="Expense",
            reference_id=expense.id,
            reference_number=expense.expense_number,
            description=f"Expense: {expense.description}",
            created_by=user_id
        )
        credit_entry = Ledger(
            transaction_date=expense.expense_date,
            account=payment_account,
            account_type=AccountType.ASSET.value,
            debit=Decimal("0.00"),
            credit=expense.amount,
            transaction_type=TransactionType.EXPENSE.value,
            reference_model="Expense",
            reference_id=expense.id,
            reference_number=expense.expense_number,
            description=f"Payment: {expense.description}",
            created_by=user_id
        )
        self.db.add_all([debit_entry, credit_entry])
        self.db.flush()

        logger.info(
            f"Posted expense {expense.expense_number}: Dr {EXPENSE_ACCOUNT} / Cr {payment_account} "
            f"{expense.amount}"
        )
        return [debit_entry, credit_entry]

    def get_entries(
        self,
        reference_model: Optional[str] = None,
        reference_id: Optional[int] = None,
        account: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[Ledger]:
        query = self.db.query(Ledger).filter(Ledger.is_active == True)

        if reference_model:
            query = query.filter(Ledger.reference_model == reference_model)
        if reference_id:
            query = query.filter(Ledger.reference_id == reference_id)
        if account:
            query = query.filter(Ledger.account == account)
        if start_date:
            query = query.filter(Ledger.transaction_date >= start_date)
        if end_date:
            query = query.filter(Ledger.transaction_date <= end_date)

        return query.order_by(Ledger.transaction_date, Ledger.id).all()

    def get_totals(self, reference_model: Optional[str] = None,
                   reference_id: Optional[int] = None) -> Dict[str, Decimal]:
        """Debit and credit totals; equal for any balanced set of postings"""
        query = self.db.query(
            func.coalesce(func.sum(Ledger.debit), 0),
            func.coalesce(func.sum(Ledger.credit), 0)
        ).filter(Ledger.is_active == True)

        if reference_model:
            query = query.filter(Ledger.reference_model == reference_model)
        if reference_id:
            query = query.filter(Ledger.reference_id == reference_id)

        total_debit, total_credit = query.one()
        return {
            "total_debit": Decimal(str(total_debit)),
            "total_credit": Decimal(str(total_credit)),
        }
