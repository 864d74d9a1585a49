"""
Expenses API Routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from backoffice.api.deps import PageParams, dump, dump_list, paginated, success
from backoffice.core.database import get_db
from backoffice.core.security import get_current_user, RoleChecker, APPROVER_ROLES
from backoffice.models import User, UserRole
from backoffice.schemas import (
    ApprovalDecision, ExpenseCategoryCreate, ExpenseCategoryResponse, ExpenseCreate,
    ExpenseResponse, ExpenseStats, ExpenseUpdate
)
from backoffice.services.expense_service import ExpenseService, ExpenseCategoryService

router = APIRouter(prefix="/expenses", tags=["Expenses"])
category_router = APIRouter(prefix="/expense-categories", tags=["Expenses"])

can_record = RoleChecker(APPROVER_ROLES)
can_approve = RoleChecker([UserRole.ACCOUNT_MANAGER, UserRole.HOF])


# ==================== CATEGORIES ====================

@category_router.get("")
async def list_expense_categories(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List expense categories"""
    categories = ExpenseCategoryService(db).get_all()
    return success(dump_list(ExpenseCategoryResponse, categories))


@category_router.post("", status_code=201, dependencies=[Depends(RoleChecker([UserRole.ADMIN]))])
async def create_expense_category(
    category_data: ExpenseCategoryCreate,
    db: Session = Depends(get_db)
):
    category = ExpenseCategoryService(db).create(category_data)
    db.commit()
    db.refresh(category)
    return success(dump(ExpenseCategoryResponse, category), "Expense category created")


# ==================== EXPENSES ====================

@router.get("")
async def list_expenses(
    status: str = None,
    category_id: int = None,
    payment_method: str = None,
    start_date: date = None,
    end_date: date = None,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List expenses with filters"""
    expenses, total = ExpenseService(db).get_all(
        status=status,
        category_id=category_id,
        payment_method=payment_method,
        start_date=start_date,
        end_date=end_date,
        page=pages.page,
        limit=pages.limit
    )
    return paginated(ExpenseResponse, expenses, total, pages)


@router.post("", status_code=201, dependencies=[Depends(can_record)])
async def create_expense(
    expense_data: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create a draft expense"""
    expense = ExpenseService(db).create(expense_data, current_user)
    db.commit()
    db.refresh(expense)
    return success(dump(ExpenseResponse, expense), "Expense created")


@router.get("/stats")
async def get_expense_stats(
    start_date: date = None,
    end_date: date = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    stats = ExpenseService(db).get_stats(start_date, end_date)
    return success(dump(ExpenseStats, stats))


@router.get("/approval-queue", dependencies=[Depends(can_record)])
async def get_expense_approval_queue(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Expenses waiting on the caller's role"""
    expenses = ExpenseService(db).get_approval_queue(current_user)
    return success(dump_list(ExpenseResponse, expenses))


@router.get("/{expense_id}")
async def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get expense by ID with its approval history"""
    expense = ExpenseService(db).get_or_404(expense_id)
    return success(dump(ExpenseResponse, expense))


@router.put("/{expense_id}", dependencies=[Depends(can_record)])
async def update_expense(
    expense_id: int,
    expense_data: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    expense = ExpenseService(db).update(expense_id, expense_data, current_user)
    db.commit()
    db.refresh(expense)
    return success(dump(ExpenseResponse, expense), "Expense updated")


@router.delete("/{expense_id}", dependencies=[Depends(can_record)])
async def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ExpenseService(db).delete(expense_id, current_user)
    db.commit()
    return success(message="Expense deleted")


@router.post("/{expense_id}/submit", dependencies=[Depends(can_record)])
async def submit_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Send a draft expense to the Accounts stage"""
    expense = ExpenseService(db).submit(expense_id, current_user)
    db.commit()
    db.refresh(expense)
    return success(dump(ExpenseResponse, expense), "Expense submitted for approval")


@router.post("/{expense_id}/approve", dependencies=[Depends(can_approve)])
async def approve_expense(
    expense_id: int,
    decision: Optional[ApprovalDecision] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Approve the expense at its current stage"""
    expense = ExpenseService(db).approve(expense_id, current_user, decision.remarks if decision else None)
    db.commit()
    db.refresh(expense)
    return success(dump(ExpenseResponse, expense), f"Expense {expense.status.lower()}")


@router.post("/{expense_id}/reject", dependencies=[Depends(can_approve)])
async def reject_expense(
    expense_id: int,
    decision: Optional[ApprovalDecision] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    expense = ExpenseService(db).reject(expense_id, current_user, decision.remarks if decision else None)
    db.commit()
    db.refresh(expense)
    return success(dump(ExpenseResponse, expense), "Expense rejected")
