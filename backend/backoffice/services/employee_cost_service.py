"""
Payroll Service - Employees and monthly employee costs
"""
from typing import Optional, List, Dict, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal
from datetime import date

from backoffice.core.exceptions import DuplicateEntryError, MissingFieldError, NotFoundError
from backoffice.models import Employee, EmployeeCost, User
from backoffice.schemas import EmployeeCreate, EmployeeCostCreate, EmployeeCostUpdate
from backoffice.services.audit_service import AuditService, AuditAction

EARNINGS = ("salary", "commission", "fuel", "entertainment", "bonus", "overtime", "other_allowances")
DEDUCTIONS = ("deductions", "advances")
AMOUNT_FIELDS = EARNINGS + DEDUCTIONS


def calculate_net_pay(cost) -> Decimal:
    """Earnings less deductions and advances"""
    earnings = sum((Decimal(getattr(cost, f) or 0) for f in EARNINGS), Decimal("0"))
    deductions = sum((Decimal(getattr(cost, f) or 0) for f in DEDUCTIONS), Decimal("0"))
    return earnings - deductions


class EmployeeService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, employee_id: int) -> Optional[Employee]:
        return self.db.query(Employee).filter(
            Employee.id == employee_id,
            Employee.is_active == True
        ).first()

    def get_all(self, include_inactive: bool = False) -> List[Employee]:
        query = self.db.query(Employee)
        if not include_inactive:
            query = query.filter(Employee.is_active == True)
        return query.order_by(Employee.full_name).all()

    def create(self, employee_data: EmployeeCreate) -> Employee:
        existing = self.db.query(Employee).filter(
            Employee.employee_code == employee_data.employee_code
        ).first()
        if existing:
            raise DuplicateEntryError(f"Employee code '{employee_data.employee_code}' already exists")

        employee = Employee(**employee_data.model_dump())
        self.db.add(employee)
        self.db.flush()
        return employee


class EmployeeCostService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def get_by_id(self, cost_id: int) -> Optional[EmployeeCost]:
        return self.db.query(EmployeeCost).filter(
            EmployeeCost.id == cost_id,
            EmployeeCost.is_active == True
        ).first()

    def get_or_404(self, cost_id: int) -> EmployeeCost:
        cost = self.get_by_id(cost_id)
        if not cost:
            raise NotFoundError("EmployeeCost", cost_id)
        return cost

    def get_all(
        self,
        employee_id: Optional[int] = None,
        year: Optional[int] = None,
        month: Optional[int] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[EmployeeCost], int]:
        query = self.db.query(EmployeeCost).filter(EmployeeCost.is_active == True)

        if employee_id:
            query = query.filter(EmployeeCost.employee_id == employee_id)
        if year:
            query = query.filter(EmployeeCost.year == year)
        if month:
            query = query.filter(EmployeeCost.month == month)

        total = query.count()
        costs = query.order_by(
            EmployeeCost.year.desc(), EmployeeCost.month.desc(), EmployeeCost.id
        ).offset((page - 1) * limit).limit(limit).all()
        return costs, total

    def _check_period_free(self, employee_id: int, year: int, month: int, exclude_id: Optional[int] = None):
        query = self.db.query(EmployeeCost).filter(
            EmployeeCost.employee_id == employee_id,
            EmployeeCost.year == year,
            EmployeeCost.month == month
        )
        if exclude_id:
            query = query.filter(EmployeeCost.id != exclude_id)
        if query.first():
            raise DuplicateEntryError(
                f"Cost entry already exists for this employee for {month:02d}/{year}",
                code="DUPLICATE_COST_ENTRY"
            )

    def create(self, cost_data: EmployeeCostCreate, user: User) -> EmployeeCost:
        if not EmployeeService(self.db).get_by_id(cost_data.employee_id):
            raise NotFoundError("Employee", cost_data.employee_id)
        self._check_period_free(cost_data.employee_id, cost_data.year, cost_data.month)

        values = cost_data.model_dump()
        if cost_data.payment_method:
            values["payment_method"] = cost_data.payment_method.value

        cost = EmployeeCost(**values, created_by=user.id)
        cost.net_pay = calculate_net_pay(cost)
        self.db.add(cost)
        self.db.flush()

        self.audit.log(
            AuditAction.CREATE, "EmployeeCost", cost.id,
            description=f"Payroll cost {cost.month:02d}/{cost.year}",
            new_values={"employee_id": cost.employee_id, "net_pay": cost.net_pay},
            user=user
        )
        return cost

    def update(self, cost_id: int, cost_data: EmployeeCostUpdate, user: User) -> EmployeeCost:
        cost = self.get_or_404(cost_id)
        update_data = cost_data.model_dump(exclude_unset=True)

        year = update_data.get("year") or cost.year
        month = update_data.get("month") or cost.month
        if (year, month) != (cost.year, cost.month):
            self._check_period_free(cost.employee_id, year, month, exclude_id=cost.id)

        old_values = {"net_pay": cost.net_pay}
        for field, value in update_data.items():
            if value is None and field in AMOUNT_FIELDS + ("year", "month"):
                continue
            if field == "payment_method" and value is not None:
                value = value.value
            setattr(cost, field, value)

        cost.net_pay = calculate_net_pay(cost)
        self.db.flush()
        self.audit.log(
            AuditAction.UPDATE, "EmployeeCost", cost.id,
            old_values=old_values, new_values={"net_pay": cost.net_pay}, user=user
        )
        return cost

    def delete(self, cost_id: int, user: User) -> EmployeeCost:
        cost = self.get_or_404(cost_id)
        cost.is_active = False
        self.db.flush()
        self.audit.log(AuditAction.DELETE, "EmployeeCost", cost.id, user=user)
        return cost

    def _totals(self, query) -> Dict:
        row = query.with_entities(
            func.count(func.distinct(EmployeeCost.employee_id)),
            *[func.coalesce(func.sum(getattr(EmployeeCost, f)), 0) for f in AMOUNT_FIELDS],
            func.coalesce(func.sum(EmployeeCost.net_pay), 0)
        ).one()

        summary = {"total_employees": row[0]}
        for i, field in enumerate(AMOUNT_FIELDS, start=1):
            summary[f"total_{field}"] = Decimal(str(row[i]))
        summary["total_net_pay"] = Decimal(str(row[-1]))
        return summary

    def get_payroll_summary(self, year: Optional[int], month: Optional[int]) -> Dict:
        """Totals of every cost component for one payroll month"""
        if not year or not month:
            raise MissingFieldError(
                "year, month", "Year and month are required", code="MISSING_PARAMETERS"
            )

        return self._totals(self.db.query(EmployeeCost).filter(
            EmployeeCost.is_active == True,
            EmployeeCost.year == year,
            EmployeeCost.month == month
        ))

    def get_stats(self, today: Optional[date] = None) -> Dict:
        today = today or date.today()
        base = self.db.query(EmployeeCost).filter(
            EmployeeCost.is_active == True,
            EmployeeCost.year == today.year
        )

        current_month = self._totals(base.filter(EmployeeCost.month == today.month))
        year_to_date = self._totals(base.filter(EmployeeCost.month <= today.month))

        return {
            "year": today.year,
            "month": today.month,
            "current_month": current_month,
            "year_to_date": year_to_date,
        }
