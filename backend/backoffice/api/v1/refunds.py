"""
Refunds API Routes
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
    ApprovalDecision, RefundMarkPaid, RefundResponse, RefundScheduleCreate, RefundStats
)
from backoffice.services.refund_service import RefundService

router = APIRouter(prefix="/refunds", tags=["Refunds"])

can_record = RoleChecker(APPROVER_ROLES)
can_approve = RoleChecker([UserRole.ACCOUNT_MANAGER, UserRole.HOF])


@router.get("")
async def list_refunds(
    cancellation_id: int = None,
    status: str = None,
    approval_status: str = None,
    due_from: date = None,
    due_to: date = None,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    refunds, total = RefundService(db).get_all(
        cancellation_id=cancellation_id,
        status=status,
        approval_status=approval_status,
        due_from=due_from,
        due_to=due_to,
        page=pages.page,
        limit=pages.limit
    )
    return paginated(RefundResponse, refunds, total, pages)


@router.post("", status_code=201, dependencies=[Depends(can_record)])
async def create_refund_schedule(
    data: RefundScheduleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create the installment schedule for an approved cancellation"""
    refunds = RefundService(db).create_schedule(data, current_user)
    db.commit()
    for refund in refunds:
        db.refresh(refund)
    return success(
        dump_list(RefundResponse, refunds),
        f"Refund schedule created with {len(refunds)} installments"
    )


@router.get("/stats")
async def get_refund_stats(
    cancellation_id: int = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    stats = RefundService(db).get_stats(cancellation_id)
    return success(dump(RefundStats, stats))


@router.get("/approval-queue")
async def get_refund_approval_queue(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    refunds = RefundService(db).get_approval_queue(current_user)
    return success(dump_list(RefundResponse, refunds))


@router.get("/{refund_id}")
async def get_refund(
    refund_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    refund = RefundService(db).get_or_404(refund_id)
    return success(dump(RefundResponse, refund))


@router.post("/{refund_id}/submit", dependencies=[Depends(can_record)])
async def submit_refund(
    refund_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    refund = RefundService(db).submit(refund_id, current_user)
    db.commit()
    db.refresh(refund)
    return success(dump(RefundResponse, refund), "Refund submitted for approval")


@router.post("/{refund_id}/approve", dependencies=[Depends(can_approve)])
async def approve_refund(
    refund_id: int,
    decision: Optional[ApprovalDecision] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    refund = RefundService(db).approve(refund_id, current_user, decision.remarks if decision else None)
    db.commit()
    db.refresh(refund)
    return success(dump(RefundResponse, refund), f"Refund {refund.approval_status.lower()}")


@router.post("/{refund_id}/reject", dependencies=[Depends(can_approve)])
async def reject_refund(
    refund_id: int,
    decision: Optional[ApprovalDecision] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    refund = RefundService(db).reject(refund_id, current_user, decision.remarks if decision else None)
    db.commit()
    db.refresh(refund)
    return success(dump(RefundResponse, refund), "Refund rejected")


@router.post("/{refund_id}/mark-paid", dependencies=[Depends(can_approve)])
async def mark_refund_paid(
    refund_id: int,
    data: RefundMarkPaid,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    refund = RefundService(db).mark_paid(refund_id, data, current_user)
    db.commit()
    db.refresh(refund)
    return success(dump(RefundResponse, refund), "Refund marked as paid")
