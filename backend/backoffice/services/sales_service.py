"""
Client, Sale & Receipt Service - the records cancellations and cheques hang off
"""
from typing import Optional, List
from sqlalchemy.orm import Session
from datetime import date
import logging

from backoffice.core.exceptions import DuplicateEntryError, InvalidAmountError, MissingFieldError, NotFoundError
from backoffice.models import Client, PaymentMethod, Receipt, Sale, SaleStatus, User
from backoffice.schemas import ClientCreate, ReceiptCreate, SaleCreate

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, client_id: int) -> Optional[Client]:
        return self.db.query(Client).filter(
            Client.id == client_id,
            Client.is_active == True
        ).first()

    def get_all(self, search: Optional[str] = None) -> List[Client]:
        query = self.db.query(Client).filter(Client.is_active == True)
        if search:
            query = query.filter(Client.name.ilike(f"%{search}%"))
        return query.order_by(Client.name).all()

    def create(self, client_data: ClientCreate) -> Client:
        client = Client(**client_data.model_dump())
        self.db.add(client)
        self.db.flush()
        return client


class SaleService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, sale_id: int) -> Optional[Sale]:
        return self.db.query(Sale).filter(
            Sale.id == sale_id,
            Sale.is_active == True
        ).first()

    def get_all(self, client_id: Optional[int] = None, status: Optional[str] = None) -> List[Sale]:
        query = self.db.query(Sale).filter(Sale.is_active == True)
        if client_id:
            query = query.filter(Sale.client_id == client_id)
        if status:
            query = query.filter(Sale.status == status)
        return query.order_by(Sale.id.desc()).all()

    def create(self, sale_data: SaleCreate) -> Sale:
        if not ClientService(self.db).get_by_id(sale_data.client_id):
            raise NotFoundError("Client", sale_data.client_id)

        existing = self.db.query(Sale).filter(Sale.sale_number == sale_data.sale_number).first()
        if existing:
            raise DuplicateEntryError(f"Sale number '{sale_data.sale_number}' already exists")

        sale = Sale(
            sale_number=sale_data.sale_number,
            client_id=sale_data.client_id,
            total_price=sale_data.total_price,
            paid_amount=sale_data.paid_amount,
            sale_date=sale_data.sale_date or date.today(),
            status=SaleStatus.ACTIVE.value
        )
        self.db.add(sale)
        self.db.flush()
        return sale


class ReceiptService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, receipt_id: int) -> Optional[Receipt]:
        return self.db.query(Receipt).filter(
            Receipt.id == receipt_id,
            Receipt.is_active == True
        ).first()

    def get_or_404(self, receipt_id: int) -> Receipt:
        receipt = self.get_by_id(receipt_id)
        if not receipt:
            raise NotFoundError("Receipt", receipt_id)
        return receipt

    def get_all(self, sale_id: Optional[int] = None, client_id: Optional[int] = None) -> List[Receipt]:
        query = self.db.query(Receipt).filter(Receipt.is_active == True)
        if sale_id:
            query = query.filter(Receipt.sale_id == sale_id)
        if client_id:
            query = query.filter(Receipt.client_id == client_id)
        return query.order_by(Receipt.id.desc()).all()

    def get_next_number(self, on_date: Optional[date] = None) -> str:
        """Next receipt number for the month: RCP-YYYY-MM-NNNNN"""
        on_date = on_date or date.today()
        prefix = f"RCP-{on_date.year}-{on_date.month:02d}-"

        last_receipt = self.db.query(Receipt).filter(
            Receipt.receipt_number.like(f"{prefix}%")
        ).order_by(Receipt.receipt_number.desc()).first()

        if last_receipt:
            try:
                num = int(last_receipt.receipt_number.replace(prefix, ""))
                return f"{prefix}{num + 1:05d}"
            except ValueError:
                pass

        return f"{prefix}00001"

    def create(self, receipt_data: ReceiptCreate, user: User) -> Receipt:
        if receipt_data.amount is None or receipt_data.amount <= 0:
            raise InvalidAmountError()

        instrument = receipt_data.instrument_details
        if receipt_data.payment_method.value == PaymentMethod.CHEQUE.value:
            if not instrument or not instrument.bank_name or not instrument.cheque_number:
                raise MissingFieldError(
                    "instrument_details",
                    "Bank name and cheque number are required for cheque payments"
                )
        else:
            instrument = None

        sale = SaleService(self.db).get_by_id(receipt_data.sale_id)
        if not sale:
            raise NotFoundError("Sale", receipt_data.sale_id)

        receipt_date = receipt_data.receipt_date or date.today()
        receipt = Receipt(
            receipt_number=self.get_next_number(receipt_date),
            client_id=sale.client_id,
            sale_id=sale.id,
            receipt_type=receipt_data.receipt_type.value,
            amount=receipt_data.amount,
            payment_method=receipt_data.payment_method.value,
            receipt_date=receipt_date,
            instrument_bank_name=instrument.bank_name if instrument else None,
            instrument_cheque_number=instrument.cheque_number if instrument else None,
            instrument_cheque_date=instrument.cheque_date if instrument else None,
            notes=receipt_data.notes,
            created_by=user.id
        )
        self.db.add(receipt)
        self.db.flush()

        logger.info(f"Receipt {receipt.receipt_number} recorded for sale {sale.sale_number}")
        return receipt
