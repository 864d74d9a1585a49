"""
Payroll API Routes - Employees and monthly employee costs
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from backoffice.api.deps import PageParams, dump, dump_list, paginated, success
from backoffice.core.database import get_db
from backoffice.core.security import get_current_user, RoleChecker, APPROVER_ROLES
from backoffice.models import User
from backoffice.schemas import (
    EmployeeCostCreate, EmployeeCostResponse, EmployeeCostUpdate, EmployeeCreate,
    EmployeeResponse, PayrollSummary
)
from backoffice.services.employee_cost_service import EmployeeService, EmployeeCostService

employee_router = APIRouter(prefix="/employees", tags=["Payroll"])
router = APIRouter(prefix="/employee-costs", tags=["Payroll"])

can_record = RoleChecker(APPROVER_ROLES)


# ==================== EMPLOYEES ====================

@employee_router.get("")
async def list_employees(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    employees = EmployeeService(db).get_all(include_inactive)
    return success(dump_list(EmployeeResponse, employees))


@employee_router.post("", status_code=201, dependencies=[Depends(can_record)])
async def create_employee(
    employee_data: EmployeeCreate,
    db: Session = Depends(get_db)
):
    employee = EmployeeService(db).create(employee_data)
    db.commit()
    db.refresh(employee)
    return success(dump(EmployeeResponse, employee), "Employee created")


# ==================== EMPLOYEE COSTS ====================

@router.get("")
async def list_employee_costs(
    employee_id: int = None,
    year: int = None,
    month: int = Query(None, ge=1, le=12),
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    costs, total = EmployeeCostService(db).get_all(
        employee_id=employee_id,
        year=year,
        month=month,
        page=pages.page,
        limit=pages.limit
    )
    return paginated(EmployeeCostResponse, costs, total, pages)


@router.post("", status_code=201, dependencies=[Depends(can_record)])
async def create_employee_cost(
    cost_data: EmployeeCostCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cost = EmployeeCostService(db).create(cost_data, current_user)
    db.commit()
    db.refresh(cost)
    return success(dump(EmployeeCostResponse, cost), "Employee cost recorded")


@router.get("/summary")
async def get_payroll_summary(
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Payroll totals for one month"""
    summary = EmployeeCostService(db).get_payroll_summary(year, month)
    return success(dump(PayrollSummary, summary))


@router.get("/stats")
async def get_employee_cost_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    stats = EmployeeCostService(db).get_stats()
    return success({
        "year": stats["year"],
        "month": stats["month"],
        "current_month": dump(PayrollSummary, stats["current_month"]),
        "year_to_date": dump(PayrollSummary, stats["year_to_date"]),
    })


@router.get("/{cost_id}")
async def get_employee_cost(
    cost_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump(EmployeeCostResponse, EmployeeCostService(db).get_or_404(cost_id)))


@router.put("/{cost_id}", dependencies=[Depends(can_record)])
async def update_employee_cost(
    cost_id: int,
    cost_data: EmployeeCostUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cost = EmployeeCostService(db).update(cost_id, cost_data, current_user)
    db.commit()
    db.refresh(cost)
    return success(dump(EmployeeCostResponse, cost), "Employee cost updated")


@router.delete("/{cost_id}", dependencies=[Depends(can_record)])
async def delete_employee_cost(
    cost_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    EmployeeCostService(db).delete(cost_id, current_user)
    db.commit()
    return success(message="Employee cost deleted")
