"""
Cancellations API Routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from backoffice.api.deps import PageParams, dump, paginated, success
from backoffice.core.database import get_db
from backoffice.core.security import get_current_user, RoleChecker, APPROVER_ROLES
from backoffice.models import User, UserRole
from backoffice.schemas import (
    CancellationApprove, CancellationCreate, CancellationReject, CancellationResponse,
    CancellationUpdate, CancellationWithRefunds
)
from backoffice.services.cancellation_service import CancellationService

router = APIRouter(prefix="/cancellations", tags=["Cancellations"])

can_record = RoleChecker(APPROVER_ROLES)
can_decide = RoleChecker([UserRole.HOF])


@router.get("")
async def list_cancellations(
    status: str = None,
    sale_id: int = None,
    start_date: date = None,
    end_date: date = None,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cancellations, total = CancellationService(db).get_all(
        status=status,
        sale_id=sale_id,
        start_date=start_date,
        end_date=end_date,
        page=pages.page,
        limit=pages.limit
    )
    return paginated(CancellationResponse, cancellations, total, pages)


@router.post("", status_code=201, dependencies=[Depends(can_record)])
async def create_cancellation(
    data: CancellationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Cancel a sale and compute the refundable amount"""
    cancellation = CancellationService(db).create(data, current_user)
    db.commit()
    db.refresh(cancellation)
    return success(dump(CancellationResponse, cancellation), "Cancellation created")


@router.get("/{cancellation_id}")
async def get_cancellation(
    cancellation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a cancellation with its refund schedule"""
    cancellation = CancellationService(db).get_or_404(cancellation_id)
    return success(dump(CancellationWithRefunds, cancellation))


@router.put("/{cancellation_id}", dependencies=[Depends(can_record)])
async def update_cancellation(
    cancellation_id: int,
    data: CancellationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cancellation = CancellationService(db).update(cancellation_id, data, current_user)
    db.commit()
    db.refresh(cancellation)
    return success(dump(CancellationResponse, cancellation), "Cancellation updated")


@router.delete("/{cancellation_id}", dependencies=[Depends(RoleChecker([UserRole.ADMIN]))])
async def delete_cancellation(
    cancellation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    CancellationService(db).delete(cancellation_id, current_user)
    db.commit()
    return success(message="Cancellation deleted")


@router.post("/{cancellation_id}/approve", dependencies=[Depends(can_decide)])
async def approve_cancellation(
    cancellation_id: int,
    data: Optional[CancellationApprove] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cancellation = CancellationService(db).approve(
        cancellation_id, current_user, data.notes if data else None
    )
    db.commit()
    db.refresh(cancellation)
    return success(dump(CancellationResponse, cancellation), "Cancellation approved")


@router.post("/{cancellation_id}/reject", dependencies=[Depends(can_decide)])
async def reject_cancellation(
    cancellation_id: int,
    data: Optional[CancellationReject] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cancellation = CancellationService(db).reject(
        cancellation_id, current_user, data.reason if data else None
    )
    db.commit()
    db.refresh(cancellation)
    return success(dump(CancellationResponse, cancellation), "Cancellation rejected")
