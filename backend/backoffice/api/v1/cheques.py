"""
Cheques API Routes - PDC and current cheque tracking
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from backoffice.api.deps import PageParams, dump, dump_list, paginated, success
from backoffice.core.database import get_db
from backoffice.core.security import get_current_user, RoleChecker, APPROVER_ROLES
from backoffice.models import User, UserRole
from backoffice.schemas import (
    ChequeBounce, ChequeCancel, ChequeClear, ChequeCreate, ChequeResponse, ChequeStats,
    ChequeUpdate, SweepResult
)
from backoffice.services.cheque_service import ChequeService

router = APIRouter(prefix="/cheques", tags=["Cheques"])

can_record = RoleChecker(APPROVER_ROLES)


@router.get("")
async def list_cheques(
    status: str = None,
    cheque_type: str = None,
    client_id: int = None,
    due_from: date = None,
    due_to: date = None,
    search: str = None,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cheques, total = ChequeService(db).get_all(
        status=status,
        cheque_type=cheque_type,
        client_id=client_id,
        due_from=due_from,
        due_to=due_to,
        search=search,
        page=pages.page,
        limit=pages.limit
    )
    return paginated(ChequeResponse, cheques, total, pages)


@router.post("", status_code=201, dependencies=[Depends(can_record)])
async def create_cheque(
    cheque_data: ChequeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cheque = ChequeService(db).create(cheque_data, current_user)
    db.commit()
    db.refresh(cheque)
    return success(dump(ChequeResponse, cheque), "Cheque recorded")


@router.get("/due")
async def list_due_cheques(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Open cheques due today or earlier"""
    return success(dump_list(ChequeResponse, ChequeService(db).get_due()))


@router.get("/upcoming")
async def list_upcoming_cheques(
    days: int = Query(7, ge=0, le=365),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump_list(ChequeResponse, ChequeService(db).get_upcoming(days)))


@router.get("/stats")
async def get_cheque_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump(ChequeStats, ChequeService(db).get_stats()))


@router.post("/sweep", dependencies=[Depends(RoleChecker([UserRole.ADMIN]))])
async def sweep_cheque_statuses(
    db: Session = Depends(get_db)
):
    """Move open cheques to Due Today / Overdue now instead of waiting for the scheduler"""
    result = ChequeService(db).sweep_statuses()
    db.commit()
    return success(dump(SweepResult, result), "Cheque statuses updated")


@router.get("/{cheque_id}")
async def get_cheque(
    cheque_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump(ChequeResponse, ChequeService(db).get_or_404(cheque_id)))


@router.put("/{cheque_id}", dependencies=[Depends(can_record)])
async def update_cheque(
    cheque_id: int,
    cheque_data: ChequeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cheque = ChequeService(db).update(cheque_id, cheque_data, current_user)
    db.commit()
    db.refresh(cheque)
    return success(dump(ChequeResponse, cheque), "Cheque updated")


@router.delete("/{cheque_id}", dependencies=[Depends(can_record)])
async def delete_cheque(
    cheque_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ChequeService(db).delete(cheque_id, current_user)
    db.commit()
    return success(message="Cheque deleted")


@router.post("/{cheque_id}/clear", dependencies=[Depends(can_record)])
async def clear_cheque(
    cheque_id: int,
    data: Optional[ChequeClear] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cheque = ChequeService(db).mark_cleared(
        cheque_id, current_user, data.cleared_date if data else None
    )
    db.commit()
    db.refresh(cheque)
    return success(dump(ChequeResponse, cheque), "Cheque cleared")


@router.post("/{cheque_id}/bounce", dependencies=[Depends(can_record)])
async def bounce_cheque(
    cheque_id: int,
    data: Optional[ChequeBounce] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cheque = ChequeService(db).mark_bounced(
        cheque_id, current_user,
        data.bounce_reason if data else None,
        data.bounce_date if data else None
    )
    db.commit()
    db.refresh(cheque)
    return success(dump(ChequeResponse, cheque), "Cheque marked as bounced")


@router.post("/{cheque_id}/cancel", dependencies=[Depends(can_record)])
async def cancel_cheque(
    cheque_id: int,
    data: Optional[ChequeCancel] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cheque = ChequeService(db).cancel(
        cheque_id, current_user,
        data.cancel_reason if data else None,
        data.cancel_date if data else None
    )
    db.commit()
    db.refresh(cheque)
    return success(dump(ChequeResponse, cheque), "Cheque cancelled")
