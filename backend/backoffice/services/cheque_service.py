"""
Cheque Service - Post-dated and current cheque tracking
"""
from typing import Optional, List, Dict, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal
from datetime import date, timedelta
import logging

from backoffice.core.exceptions import (
    AlreadyBouncedError, AlreadyCancelledError, AlreadyClearedError, FinalizedError,
    InvalidAmountError, MissingFieldError, NotFoundError
)
from backoffice.models import Cheque, ChequeStatus, Client, Receipt, User, CHEQUE_TERMINAL_STATUSES
from backoffice.schemas import ChequeCreate, ChequeUpdate
from backoffice.services.audit_service import AuditService, AuditAction
from backoffice.services.workflow import conditional_update

logger = logging.getLogger(__name__)

OPEN_STATUSES = (
    ChequeStatus.PENDING.value,
    ChequeStatus.DUE_TODAY.value,
    ChequeStatus.OVERDUE.value,
)

REQUIRED_FIELDS = ("cheque_number", "bank_name", "issue_date", "due_date", "amount", "client_id")


def derive_status(due_date: date, today: Optional[date] = None) -> str:
    """Open status implied by the due date"""
    today = today or date.today()
    if due_date < today:
        return ChequeStatus.OVERDUE.value
    if due_date == today:
        return ChequeStatus.DUE_TODAY.value
    return ChequeStatus.PENDING.value


class ChequeService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def get_by_id(self, cheque_id: int) -> Optional[Cheque]:
        return self.db.query(Cheque).filter(
            Cheque.id == cheque_id,
            Cheque.is_deleted == False
        ).first()

    def get_or_404(self, cheque_id: int) -> Cheque:
        cheque = self.get_by_id(cheque_id)
        if not cheque:
            raise NotFoundError("Cheque", cheque_id)
        return cheque

    def get_all(
        self,
        status: Optional[str] = None,
        cheque_type: Optional[str] = None,
        client_id: Optional[int] = None,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Cheque], int]:
        query = self.db.query(Cheque).filter(Cheque.is_deleted == False)

        if status:
            query = query.filter(Cheque.status == status)
        if cheque_type:
            query = query.filter(Cheque.cheque_type == cheque_type)
        if client_id:
            query = query.filter(Cheque.client_id == client_id)
        if due_from:
            query = query.filter(Cheque.due_date >= due_from)
        if due_to:
            query = query.filter(Cheque.due_date <= due_to)
        if search:
            query = query.filter(
                (Cheque.cheque_number.ilike(f"%{search}%")) |
                (Cheque.bank_name.ilike(f"%{search}%"))
            )

        total = query.count()
        cheques = query.order_by(Cheque.due_date, Cheque.id).offset((page - 1) * limit).limit(limit).all()
        return cheques, total

    def create(self, cheque_data: ChequeCreate, user: User) -> Cheque:
        for field in REQUIRED_FIELDS:
            value = getattr(cheque_data, field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise MissingFieldError(field)
        if cheque_data.amount <= 0:
            raise InvalidAmountError()

        client = self.db.query(Client).filter(
            Client.id == cheque_data.client_id,
            Client.is_active == True
        ).first()
        if not client:
            raise NotFoundError("Client", cheque_data.client_id)
        if cheque_data.receipt_id and not self.db.query(Receipt).filter(
            Receipt.id == cheque_data.receipt_id,
            Receipt.is_active == True
        ).first():
            raise NotFoundError("Receipt", cheque_data.receipt_id)

        cheque = Cheque(
            cheque_number=cheque_data.cheque_number,
            bank_name=cheque_data.bank_name,
            branch_name=cheque_data.branch_name,
            cheque_type=cheque_data.cheque_type.value,
            issue_date=cheque_data.issue_date,
            due_date=cheque_data.due_date,
            amount=cheque_data.amount,
            client_id=cheque_data.client_id,
            sale_id=cheque_data.sale_id,
            receipt_id=cheque_data.receipt_id,
            refund_id=cheque_data.refund_id,
            status=derive_status(cheque_data.due_date),
            notes=cheque_data.notes,
            created_by=user.id
        )
        self.db.add(cheque)
        self.db.flush()

        self.audit.log(
            AuditAction.CREATE, "Cheque", cheque.id,
            description=f"Cheque {cheque.cheque_number} ({cheque.bank_name})",
            new_values={"amount": cheque.amount, "due_date": cheque.due_date, "status": cheque.status},
            user=user
        )
        return cheque

    def update(self, cheque_id: int, cheque_data: ChequeUpdate, user: User) -> Cheque:
        cheque = self.get_or_404(cheque_id)
        if cheque.status in CHEQUE_TERMINAL_STATUSES:
            raise FinalizedError(
                f"Cannot update a cheque that is {cheque.status.lower()}", code="CHEQUE_FINALIZED"
            )

        update_data = cheque_data.model_dump(exclude_unset=True)
        if "amount" in update_data and (update_data["amount"] is None or update_data["amount"] <= 0):
            raise InvalidAmountError()

        for field, value in update_data.items():
            if value is None and field not in ("branch_name", "notes"):
                continue
            if field == "cheque_type":
                value = value.value
            setattr(cheque, field, value)

        cheque.status = derive_status(cheque.due_date)
        self.db.flush()
        self.audit.log(AuditAction.UPDATE, "Cheque", cheque.id, new_values=update_data, user=user)
        return cheque

    def delete(self, cheque_id: int, user: User) -> Cheque:
        cheque = self.get_or_404(cheque_id)
        if cheque.status == ChequeStatus.CLEARED.value:
            raise FinalizedError("Cannot delete a cleared cheque", code="CANNOT_DELETE_CLEARED_CHEQUE")
        if cheque.status in CHEQUE_TERMINAL_STATUSES:
            raise FinalizedError(
                f"Cannot delete a cheque that is {cheque.status.lower()}", code="CHEQUE_FINALIZED"
            )

        cheque.is_deleted = True
        self.db.flush()
        self.audit.log(AuditAction.DELETE, "Cheque", cheque.id, user=user)
        return cheque

    # ==================== LIFECYCLE ====================

    def _finalize(self, cheque: Cheque, values: dict):
        conditional_update(self.db, Cheque, cheque.id, "status", cheque.status, values)
        self.db.refresh(cheque)

    def mark_cleared(self, cheque_id: int, user: User, cleared_date: Optional[date] = None) -> Cheque:
        cheque = self.get_or_404(cheque_id)
        if cheque.status == ChequeStatus.CLEARED.value:
            raise AlreadyClearedError("Cheque is already cleared")
        if cheque.status in CHEQUE_TERMINAL_STATUSES:
            raise FinalizedError(
                f"Cannot clear a cheque that is {cheque.status.lower()}", code="CHEQUE_FINALIZED"
            )

        self._finalize(cheque, {
            "status": ChequeStatus.CLEARED.value,
            "cleared_date": cleared_date or date.today(),
            "cleared_by": user.id,
        })
        self.audit.log(
            AuditAction.CHEQUE_CLEARED, "Cheque", cheque.id,
            new_values={"cleared_date": cheque.cleared_date}, user=user
        )
        logger.info(f"Cheque {cheque.cheque_number} cleared by {user.username}")
        return cheque

    def mark_bounced(self, cheque_id: int, user: User, reason: Optional[str],
                     bounce_date: Optional[date] = None) -> Cheque:
        if not reason or not reason.strip():
            raise MissingFieldError("bounce_reason", "Bounce reason is required")

        cheque = self.get_or_404(cheque_id)
        if cheque.status == ChequeStatus.BOUNCED.value:
            raise AlreadyBouncedError("Cheque is already bounced")
        if cheque.status in CHEQUE_TERMINAL_STATUSES:
            raise FinalizedError(
                f"Cannot bounce a cheque that is {cheque.status.lower()}", code="CHEQUE_FINALIZED"
            )

        self._finalize(cheque, {
            "status": ChequeStatus.BOUNCED.value,
            "bounce_date": bounce_date or date.today(),
            "bounce_reason": reason,
            "bounced_by": user.id,
        })
        self.audit.log(
            AuditAction.CHEQUE_BOUNCED, "Cheque", cheque.id,
            description=reason, user=user
        )
        logger.warning(f"Cheque {cheque.cheque_number} bounced: {reason}")
        return cheque

    def cancel(self, cheque_id: int, user: User, reason: Optional[str],
               cancel_date: Optional[date] = None) -> Cheque:
        if not reason or not reason.strip():
            raise MissingFieldError("cancel_reason", "Cancellation reason is required")

        cheque = self.get_or_404(cheque_id)
        if cheque.status == ChequeStatus.CANCELLED.value:
            raise AlreadyCancelledError("Cheque is already cancelled")
        if cheque.status in CHEQUE_TERMINAL_STATUSES:
            raise FinalizedError(
                f"Cannot cancel a cheque that is {cheque.status.lower()}", code="CHEQUE_FINALIZED"
            )

        self._finalize(cheque, {
            "status": ChequeStatus.CANCELLED.value,
            "cancelled_date": cancel_date or date.today(),
            "cancelled_reason": reason,
            "cancelled_by": user.id,
        })
        self.audit.log(
            AuditAction.CHEQUE_CANCELLED, "Cheque", cheque.id,
            description=reason, user=user
        )
        return cheque

    # ==================== DUE TRACKING ====================

    def get_due(self, today: Optional[date] = None) -> List[Cheque]:
        """Open cheques due today or earlier"""
        today = today or date.today()
        return self.db.query(Cheque).filter(
            Cheque.is_deleted == False,
            Cheque.status.in_(OPEN_STATUSES),
            Cheque.due_date <= today
        ).order_by(Cheque.due_date, Cheque.id).all()

    def get_upcoming(self, days: int = 7, today: Optional[date] = None) -> List[Cheque]:
        """Cheques falling due within the next ``days`` days"""
        today = today or date.today()
        return self.db.query(Cheque).filter(
            Cheque.is_deleted == False,
            Cheque.status.in_([ChequeStatus.PENDING.value, ChequeStatus.DUE_TODAY.value]),
            Cheque.due_date >= today,
            Cheque.due_date <= today + timedelta(days=days)
        ).order_by(Cheque.due_date, Cheque.id).all()

    def sweep_statuses(self, today: Optional[date] = None) -> Dict[str, int]:
        """
        Move open cheques along as their due dates pass: Pending cheques due
        today become Due Today, Pending or Due Today cheques past due become
        Overdue. Terminal cheques are never touched.
        """
        today = today or date.today()

        overdue = self.db.query(Cheque).filter(
            Cheque.is_deleted == False,
            Cheque.status.in_([ChequeStatus.PENDING.value, ChequeStatus.DUE_TODAY.value]),
            Cheque.due_date < today
        ).update({"status": ChequeStatus.OVERDUE.value}, synchronize_session=False)

        due_today = self.db.query(Cheque).filter(
            Cheque.is_deleted == False,
            Cheque.status == ChequeStatus.PENDING.value,
            Cheque.due_date == today
        ).update({"status": ChequeStatus.DUE_TODAY.value}, synchronize_session=False)

        self.db.expire_all()
        if overdue or due_today:
            logger.info(f"Cheque sweep for {today}: {due_today} due today, {overdue} overdue")
        return {"due_today": due_today, "overdue": overdue}

    # ==================== STATISTICS ====================

    def get_stats(self) -> Dict:
        base = self.db.query(Cheque).filter(Cheque.is_deleted == False)

        by_status = []
        total_count = 0
        total_amount = Decimal("0")
        amounts = {}
        for status, count, amount in base.with_entities(
            Cheque.status, func.count(Cheque.id), func.coalesce(func.sum(Cheque.amount), 0)
        ).group_by(Cheque.status).all():
            amount = Decimal(str(amount))
            amounts[status] = amount
            by_status.append({"status": status, "count": count, "total_amount": amount})
            total_count += count
            total_amount += amount

        return {
            "total_cheques": total_count,
            "total_amount": total_amount,
            "cleared_amount": amounts.get(ChequeStatus.CLEARED.value, Decimal("0")),
            "pending_amount": sum((amounts.get(s, Decimal("0")) for s in OPEN_STATUSES), Decimal("0")),
            "by_status": by_status,
        }
