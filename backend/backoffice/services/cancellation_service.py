"""
Cancellation Service - Sale cancellations and their refundable amount
"""
from typing import Optional, List, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal, ROUND_HALF_UP
from datetime import date, datetime
import logging

from backoffice.core.config import settings
from backoffice.core.exceptions import (
    DuplicateEntryError, InvalidAmountError, InvalidStateError, MissingFieldError, NotFoundError
)
from backoffice.models import (
    Cancellation, CancellationStatus, Refund, RefundStatus, Sale, SaleStatus, User
)
from backoffice.schemas import CancellationCreate, CancellationUpdate
from backoffice.services.audit_service import AuditService, AuditAction
from backoffice.services.workflow import conditional_update

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

EDITABLE_STATUSES = (CancellationStatus.PENDING.value, CancellationStatus.APPROVED.value)
DELETABLE_STATUSES = (CancellationStatus.PENDING.value, CancellationStatus.REJECTED.value)


def calculate_refund(total_paid: Decimal, office_charge_percent: Decimal,
                     other_deductions: Decimal, refunded_amount: Decimal = Decimal("0")) -> dict:
    """Office charge, refundable amount and remaining refund for a cancellation"""
    office_charge_amount = (total_paid * office_charge_percent / Decimal("100")).quantize(CENT, ROUND_HALF_UP)
    refundable_amount = total_paid - office_charge_amount - other_deductions
    return {
        "office_charge_amount": office_charge_amount,
        "refundable_amount": refundable_amount,
        "remaining_refund": refundable_amount - refunded_amount,
    }


class CancellationService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def get_by_id(self, cancellation_id: int) -> Optional[Cancellation]:
        return self.db.query(Cancellation).filter(
            Cancellation.id == cancellation_id,
            Cancellation.is_active == True
        ).first()

    def get_or_404(self, cancellation_id: int) -> Cancellation:
        cancellation = self.get_by_id(cancellation_id)
        if not cancellation:
            raise NotFoundError("Cancellation", cancellation_id)
        return cancellation

    def get_all(
        self,
        status: Optional[str] = None,
        sale_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Cancellation], int]:
        query = self.db.query(Cancellation).filter(Cancellation.is_active == True)

        if status:
            query = query.filter(Cancellation.status == status)
        if sale_id:
            query = query.filter(Cancellation.sale_id == sale_id)
        if start_date:
            query = query.filter(Cancellation.cancellation_date >= start_date)
        if end_date:
            query = query.filter(Cancellation.cancellation_date <= end_date)

        total = query.count()
        cancellations = query.order_by(
            Cancellation.cancellation_date.desc(), Cancellation.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()
        return cancellations, total

    def _apply_amounts(self, cancellation: Cancellation):
        amounts = calculate_refund(
            Decimal(cancellation.total_paid),
            Decimal(cancellation.office_charge_percent),
            Decimal(cancellation.other_deductions or 0),
            Decimal(cancellation.refunded_amount or 0),
        )
        if amounts["refundable_amount"] < 0:
            raise InvalidAmountError("Deductions exceed the amount paid on the sale")

        cancellation.office_charge_amount = amounts["office_charge_amount"]
        cancellation.refundable_amount = amounts["refundable_amount"]
        cancellation.remaining_refund = amounts["remaining_refund"]

    def create(self, data: CancellationCreate, user: User) -> Cancellation:
        """Cancel a sale. The sale is marked Cancelled in the same transaction."""
        if not data.sale_id:
            raise MissingFieldError("sale_id")
        if not data.reason or not data.reason.strip():
            raise MissingFieldError("reason")

        sale = self.db.query(Sale).filter(Sale.id == data.sale_id, Sale.is_active == True).first()
        if not sale:
            raise NotFoundError("Sale", data.sale_id)
        if sale.status == SaleStatus.CANCELLED.value:
            raise InvalidStateError("Sale is already cancelled", code="SALE_ALREADY_CANCELLED")

        existing = self.db.query(Cancellation).filter(
            Cancellation.sale_id == sale.id,
            Cancellation.is_active == True,
            Cancellation.status != CancellationStatus.REJECTED.value
        ).first()
        if existing:
            raise DuplicateEntryError(
                "A cancellation already exists for this sale", code="CANCELLATION_EXISTS"
            )

        percent = data.office_charge_percent
        if percent is None:
            percent = settings.DEFAULT_OFFICE_CHARGE_PERCENT

        cancellation = Cancellation(
            sale_id=sale.id,
            cancellation_date=date.today(),
            reason=data.reason,
            total_paid=sale.paid_amount or Decimal("0.00"),
            office_charge_percent=percent,
            other_deductions=data.other_deductions or Decimal("0.00"),
            refunded_amount=Decimal("0.00"),
            status=CancellationStatus.PENDING.value,
            notes=data.notes,
            created_by=user.id
        )
        self._apply_amounts(cancellation)
        self.db.add(cancellation)

        sale.status = SaleStatus.CANCELLED.value
        self.db.flush()

        self.audit.log(
            AuditAction.CREATE, "Cancellation", cancellation.id,
            description=f"Cancelled sale {sale.sale_number}",
            new_values={"refundable_amount": cancellation.refundable_amount},
            user=user
        )
        logger.info(f"Sale {sale.sale_number} cancelled; refundable {cancellation.refundable_amount}")
        return cancellation

    def update(self, cancellation_id: int, data: CancellationUpdate, user: User) -> Cancellation:
        cancellation = self.get_or_404(cancellation_id)
        if cancellation.status not in EDITABLE_STATUSES:
            raise InvalidStateError(
                f"Cancellation cannot be updated (status: {cancellation.status})"
            )

        if cancellation.refunds and any(r.is_active for r in cancellation.refunds):
            raise InvalidStateError(
                "Refund schedule already exists; amounts can no longer change",
                code="REFUND_SCHEDULE_EXISTS"
            )

        old_values = {"refundable_amount": cancellation.refundable_amount}
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "notes":
                continue
            setattr(cancellation, field, value)

        self._apply_amounts(cancellation)
        self.db.flush()
        self.audit.log(
            AuditAction.UPDATE, "Cancellation", cancellation.id,
            old_values=old_values,
            new_values={"refundable_amount": cancellation.refundable_amount},
            user=user
        )
        return cancellation

    def delete(self, cancellation_id: int, user: User) -> Cancellation:
        """Soft delete; a pending cancellation gives the sale back"""
        cancellation = self.get_or_404(cancellation_id)
        if cancellation.status not in DELETABLE_STATUSES:
            raise InvalidStateError(
                f"Cancellation cannot be deleted (status: {cancellation.status})"
            )

        if cancellation.status == CancellationStatus.PENDING.value and cancellation.sale:
            cancellation.sale.status = SaleStatus.ACTIVE.value
        cancellation.is_active = False
        self.db.flush()
        self.audit.log(AuditAction.DELETE, "Cancellation", cancellation.id, user=user)
        return cancellation

    def approve(self, cancellation_id: int, user: User, notes: Optional[str] = None) -> Cancellation:
        cancellation = self.get_or_404(cancellation_id)
        if cancellation.status != CancellationStatus.PENDING.value:
            raise InvalidStateError(
                f"Only pending cancellations can be approved (status: {cancellation.status})"
            )

        values = {
            "status": CancellationStatus.APPROVED.value,
            "approved_by": user.id,
            "approved_at": datetime.utcnow(),
        }
        if notes:
            values["notes"] = notes
        conditional_update(self.db, Cancellation, cancellation.id, "status",
                           CancellationStatus.PENDING.value, values)
        self.db.refresh(cancellation)

        self.audit.log(
            AuditAction.APPROVE, "Cancellation", cancellation.id,
            old_values={"status": CancellationStatus.PENDING.value},
            new_values={"status": cancellation.status},
            user=user
        )
        return cancellation

    def reject(self, cancellation_id: int, user: User, reason: Optional[str]) -> Cancellation:
        """Reject a pending cancellation and restore the sale"""
        if not reason or not reason.strip():
            raise MissingFieldError("reason", "Rejection reason is required", code="REASON_REQUIRED")

        cancellation = self.get_or_404(cancellation_id)
        if cancellation.status != CancellationStatus.PENDING.value:
            raise InvalidStateError(
                f"Only pending cancellations can be rejected (status: {cancellation.status})"
            )

        conditional_update(self.db, Cancellation, cancellation.id, "status",
                           CancellationStatus.PENDING.value, {
                               "status": CancellationStatus.REJECTED.value,
                               "rejection_reason": reason,
                           })
        self.db.refresh(cancellation)

        if cancellation.sale:
            cancellation.sale.status = SaleStatus.ACTIVE.value
        self.db.flush()

        self.audit.log(
            AuditAction.REJECT, "Cancellation", cancellation.id,
            description=reason,
            new_values={"status": cancellation.status},
            user=user
        )
        return cancellation

    def update_refunded_amount(self, cancellation: Cancellation) -> Cancellation:
        """Re-tally paid installments and move the cancellation along"""
        refunded = self.db.query(
            func.coalesce(func.sum(Refund.amount), 0)
        ).filter(
            Refund.cancellation_id == cancellation.id,
            Refund.status == RefundStatus.PAID.value,
            Refund.is_active == True
        ).scalar()
        refunded = Decimal(str(refunded))

        cancellation.refunded_amount = refunded
        cancellation.remaining_refund = Decimal(cancellation.refundable_amount) - refunded

        if refunded >= Decimal(cancellation.refundable_amount):
            cancellation.status = CancellationStatus.REFUNDED.value
        elif refunded > 0:
            cancellation.status = CancellationStatus.PARTIAL_REFUND.value

        self.db.flush()
        logger.info(
            f"Cancellation {cancellation.id} refunded {refunded} of "
            f"{cancellation.refundable_amount} ({cancellation.status})"
        )
        return cancellation
