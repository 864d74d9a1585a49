"""
Banking API Routes - Bank and cash accounts
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backoffice.api.deps import dump, dump_list, success
from backoffice.core.database import get_db
from backoffice.core.security import get_current_user, RoleChecker
from backoffice.models import User, UserRole
from backoffice.schemas import (
    BankAccountCreate, BankAccountResponse, BankAccountUpdate,
    CashAccountCreate, CashAccountResponse, CashAccountUpdate
)
from backoffice.services.banking_service import BankAccountService, CashAccountService

bank_router = APIRouter(prefix="/bank-accounts", tags=["Banking"])
cash_router = APIRouter(prefix="/cash-accounts", tags=["Banking"])

can_manage = RoleChecker([UserRole.ACCOUNT_MANAGER, UserRole.HOF])


# ==================== BANK ACCOUNTS ====================

@bank_router.get("")
async def list_bank_accounts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump_list(BankAccountResponse, BankAccountService(db).get_all()))


@bank_router.post("", status_code=201, dependencies=[Depends(can_manage)])
async def create_bank_account(
    account_data: BankAccountCreate,
    db: Session = Depends(get_db)
):
    account = BankAccountService(db).create(account_data)
    db.commit()
    db.refresh(account)
    return success(dump(BankAccountResponse, account), "Bank account created")


@bank_router.get("/{account_id}")
async def get_bank_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump(BankAccountResponse, BankAccountService(db).get_or_404(account_id)))


@bank_router.put("/{account_id}", dependencies=[Depends(can_manage)])
async def update_bank_account(
    account_id: int,
    account_data: BankAccountUpdate,
    db: Session = Depends(get_db)
):
    account = BankAccountService(db).update(account_id, account_data)
    db.commit()
    db.refresh(account)
    return success(dump(BankAccountResponse, account), "Bank account updated")


@bank_router.delete("/{account_id}", dependencies=[Depends(can_manage)])
async def delete_bank_account(
    account_id: int,
    db: Session = Depends(get_db)
):
    BankAccountService(db).delete(account_id)
    db.commit()
    return success(message="Bank account deleted")


# ==================== CASH ACCOUNTS ====================

@cash_router.get("")
async def list_cash_accounts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump_list(CashAccountResponse, CashAccountService(db).get_all()))


@cash_router.post("", status_code=201, dependencies=[Depends(can_manage)])
async def create_cash_account(
    account_data: CashAccountCreate,
    db: Session = Depends(get_db)
):
    account = CashAccountService(db).create(account_data)
    db.commit()
    db.refresh(account)
    return success(dump(CashAccountResponse, account), "Cash account created")


@cash_router.get("/{account_id}")
async def get_cash_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump(CashAccountResponse, CashAccountService(db).get_or_404(account_id)))


@cash_router.put("/{account_id}", dependencies=[Depends(can_manage)])
async def update_cash_account(
    account_id: int,
    account_data: CashAccountUpdate,
    db: Session = Depends(get_db)
):
    account = CashAccountService(db).update(account_id, account_data)
    db.commit()
    db.refresh(account)
    return success(dump(CashAccountResponse, account), "Cash account updated")


@cash_router.delete("/{account_id}", dependencies=[Depends(can_manage)])
async def delete_cash_account(
    account_id: int,
    db: Session = Depends(get_db)
):
    CashAccountService(db).delete(account_id)
    db.commit()
    return success(message="Cash account deleted")
