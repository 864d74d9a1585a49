"""
Clients, Sales & Receipts API Routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backoffice.api.deps import dump, dump_list, success
from backoffice.core.database import get_db
from backoffice.core.exceptions import NotFoundError
from backoffice.core.security import get_current_user, RoleChecker, APPROVER_ROLES
from backoffice.models import User
from backoffice.schemas import (
    ClientCreate, ClientResponse, ReceiptCreate, ReceiptResponse, SaleCreate, SaleResponse
)
from backoffice.services.sales_service import ClientService, ReceiptService, SaleService

client_router = APIRouter(prefix="/clients", tags=["Sales"])
router = APIRouter(prefix="/sales", tags=["Sales"])
receipt_router = APIRouter(prefix="/receipts", tags=["Sales"])

can_record = RoleChecker(APPROVER_ROLES)


@client_router.get("")
async def list_clients(
    search: str = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump_list(ClientResponse, ClientService(db).get_all(search)))


@client_router.post("", status_code=201, dependencies=[Depends(can_record)])
async def create_client(
    client_data: ClientCreate,
    db: Session = Depends(get_db)
):
    client = ClientService(db).create(client_data)
    db.commit()
    db.refresh(client)
    return success(dump(ClientResponse, client), "Client created")


@router.get("")
async def list_sales(
    client_id: int = None,
    status: str = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump_list(SaleResponse, SaleService(db).get_all(client_id, status)))


@router.post("", status_code=201, dependencies=[Depends(can_record)])
async def create_sale(
    sale_data: SaleCreate,
    db: Session = Depends(get_db)
):
    sale = SaleService(db).create(sale_data)
    db.commit()
    db.refresh(sale)
    return success(dump(SaleResponse, sale), "Sale created")


@router.get("/{sale_id}")
async def get_sale(
    sale_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    sale = SaleService(db).get_by_id(sale_id)
    if not sale:
        raise NotFoundError("Sale", sale_id)
    return success(dump(SaleResponse, sale))


@receipt_router.get("")
async def list_receipts(
    sale_id: int = None,
    client_id: int = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump_list(ReceiptResponse, ReceiptService(db).get_all(sale_id, client_id)))


@receipt_router.post("", status_code=201, dependencies=[Depends(can_record)])
async def create_receipt(
    receipt_data: ReceiptCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    receipt = ReceiptService(db).create(receipt_data, current_user)
    db.commit()
    db.refresh(receipt)
    return success(dump(ReceiptResponse, receipt), "Receipt recorded")


@receipt_router.get("/{receipt_id}")
async def get_receipt(
    receipt_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return success(dump(ReceiptResponse, ReceiptService(db).get_or_404(receipt_id)))
