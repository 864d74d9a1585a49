"""
Ledger API Routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import date

from backoffice.api.deps import dump_list, success
from backoffice.core.database import get_db
from backoffice.core.security import get_current_user
from backoffice.models import User
from backoffice.schemas import LedgerResponse
from backoffice.services.ledger_service import LedgerService

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.get("")
async def list_ledger_entries(
    reference_model: str = None,
    reference_id: int = None,
    account: str = None,
    start_date: date = None,
    end_date: date = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Ledger rows, optionally for one source document"""
    ledger_service = LedgerService(db)
    entries = ledger_service.get_entries(reference_model, reference_id, account, start_date, end_date)
    totals = ledger_service.get_totals(reference_model, reference_id)
    return success({
        "entries": dump_list(LedgerResponse, entries),
        "total_debit": str(totals["total_debit"]),
        "total_credit": str(totals["total_credit"]),
    })
