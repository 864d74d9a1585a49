"""
Banking Service - Bank and cash accounts
"""
from typing import Optional, List
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal

from backoffice.core.exceptions import DuplicateEntryError, NotFoundError
from backoffice.models import BankAccount, CashAccount
from backoffice.schemas import BankAccountCreate, BankAccountUpdate, CashAccountCreate, CashAccountUpdate


class BankAccountService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, account_id: int) -> Optional[BankAccount]:
        return self.db.query(BankAccount).filter(
            BankAccount.id == account_id,
            BankAccount.is_active == True
        ).first()

    def get_or_404(self, account_id: int) -> BankAccount:
        account = self.get_by_id(account_id)
        if not account:
            raise NotFoundError("BankAccount", account_id)
        return account

    def get_all(self) -> List[BankAccount]:
        return self.db.query(BankAccount).filter(
            BankAccount.is_active == True
        ).order_by(BankAccount.account_name).all()

    def create(self, account_data: BankAccountCreate) -> BankAccount:
        existing = self.db.query(BankAccount).filter(
            BankAccount.account_number == account_data.account_number
        ).first()
        if existing:
            raise DuplicateEntryError(f"Account number '{account_data.account_number}' already exists")

        opening_balance = account_data.opening_balance or Decimal("0")
        account = BankAccount(
            account_name=account_data.account_name,
            bank_name=account_data.bank_name,
            branch_name=account_data.branch_name,
            account_number=account_data.account_number,
            account_type=account_data.account_type.value,
            opening_balance=opening_balance,
            current_balance=opening_balance
        )
        self.db.add(account)
        self.db.flush()
        return account

    def update(self, account_id: int, account_data: BankAccountUpdate) -> BankAccount:
        account = self.get_or_404(account_id)
        for field, value in account_data.model_dump(exclude_unset=True).items():
            if value is None and field != "branch_name":
                continue
            if field == "account_type":
                value = value.value
            setattr(account, field, value)
        self.db.flush()
        return account

    def delete(self, account_id: int) -> BankAccount:
        account = self.get_or_404(account_id)
        account.is_active = False
        self.db.flush()
        return account


class CashAccountService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, account_id: int) -> Optional[CashAccount]:
        return self.db.query(CashAccount).filter(
            CashAccount.id == account_id,
            CashAccount.is_active == True
        ).first()

    def get_or_404(self, account_id: int) -> CashAccount:
        account = self.get_by_id(account_id)
        if not account:
            raise NotFoundError("CashAccount", account_id)
        return account

    def get_all(self) -> List[CashAccount]:
        return self.db.query(CashAccount).filter(
            CashAccount.is_active == True
        ).order_by(CashAccount.name).all()

    def _check_name_free(self, name: str, exclude_id: Optional[int] = None):
        query = self.db.query(CashAccount).filter(func.lower(CashAccount.name) == name.lower())
        if exclude_id:
            query = query.filter(CashAccount.id != exclude_id)
        if query.first():
            raise DuplicateEntryError(f"Cash account '{name}' already exists")

    def create(self, account_data: CashAccountCreate) -> CashAccount:
        self._check_name_free(account_data.name)

        opening_balance = account_data.opening_balance or Decimal("0")
        account = CashAccount(
            name=account_data.name,
            description=account_data.description,
            opening_balance=opening_balance,
            current_balance=opening_balance
        )
        self.db.add(account)
        self.db.flush()
        return account

    def update(self, account_id: int, account_data: CashAccountUpdate) -> CashAccount:
        account = self.get_or_404(account_id)
        update_data = account_data.model_dump(exclude_unset=True)
        if update_data.get("name"):
            self._check_name_free(update_data["name"], exclude_id=account.id)

        for field, value in update_data.items():
            if value is None and field != "description":
                continue
            setattr(account, field, value)
        self.db.flush()
        return account

    def delete(self, account_id: int) -> CashAccount:
        account = self.get_or_404(account_id)
        account.is_active = False
        self.db.flush()
        return account
