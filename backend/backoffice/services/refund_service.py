"""
Refund Service - Installment schedules, two-stage approval and payment
"""
from typing import Optional, List, Dict, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal, ROUND_HALF_UP
from datetime import date
from dateutil.relativedelta import relativedelta
import logging

from backoffice.core.exceptions import (
    AlreadyPaidError, ForbiddenError, InvalidAmountError, InvalidStateError,
    MissingFieldError, NotApprovedError, NotFoundError, ScheduleAlreadyExistsError
)
from backoffice.models import (
    Refund, RefundApproval, RefundStatus, ApprovalStatus, Cancellation, CancellationStatus,
    User, UserRole, PENDING_APPROVAL_STATUSES
)
from backoffice.schemas import RefundScheduleCreate, RefundMarkPaid
from backoffice.services.audit_service import AuditService, AuditAction
from backoffice.services.cancellation_service import CancellationService
from backoffice.services.workflow import ApprovalWorkflow, REFUND_STAGES, conditional_update

logger = logging.getLogger(__name__)


def build_installments(refundable_amount: Decimal, number_of_installments: int,
                       start_date: date) -> List[Tuple[int, date, Decimal]]:
    """
    Split ``refundable_amount`` into ``number_of_installments`` monthly
    installments of (installment_number, due_date, amount).

    Every installment gets the amount rounded to whole units; the last one
    also absorbs the remainder so the installments always add up to the
    refundable amount exactly. Installment i falls due (i - 1) calendar months
    after ``start_date``, clamped to the end of shorter months.
    """
    total = Decimal(refundable_amount)
    base = (total / number_of_installments).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    remainder = total - base * number_of_installments

    installments = []
    for i in range(1, number_of_installments + 1):
        amount = base + remainder if i == number_of_installments else base
        installments.append((i, start_date + relativedelta(months=i - 1), amount))
    return installments


class RefundService:
    def __init__(self, db: Session):
        self.db = db
        self.workflow = ApprovalWorkflow(
            db,
            model=Refund,
            history_model=RefundApproval,
            history_fk="refund_id",
            stages=REFUND_STAGES,
            status_field="approval_status",
            role_error=ForbiddenError,
        )
        self.audit = AuditService(db)

    def get_by_id(self, refund_id: int) -> Optional[Refund]:
        return self.db.query(Refund).filter(
            Refund.id == refund_id,
            Refund.is_active == True
        ).first()

    def get_or_404(self, refund_id: int) -> Refund:
        refund = self.get_by_id(refund_id)
        if not refund:
            raise NotFoundError("Refund", refund_id)
        return refund

    def get_all(
        self,
        cancellation_id: Optional[int] = None,
        status: Optional[str] = None,
        approval_status: Optional[str] = None,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Refund], int]:
        query = self.db.query(Refund).filter(Refund.is_active == True)

        if cancellation_id:
            query = query.filter(Refund.cancellation_id == cancellation_id)
        if status:
            query = query.filter(Refund.status == status)
        if approval_status:
            query = query.filter(Refund.approval_status == approval_status)
        if due_from:
            query = query.filter(Refund.due_date >= due_from)
        if due_to:
            query = query.filter(Refund.due_date <= due_to)

        total = query.count()
        refunds = query.order_by(
            Refund.due_date, Refund.cancellation_id, Refund.installment_number
        ).offset((page - 1) * limit).limit(limit).all()
        return refunds, total

    def create_schedule(self, data: RefundScheduleCreate, user: User) -> List[Refund]:
        """Create every installment of a cancellation's refund schedule at once"""
        if not data.cancellation_id:
            raise MissingFieldError("cancellation_id")
        if data.number_of_installments is None:
            raise MissingFieldError("number_of_installments")
        if data.number_of_installments < 1:
            raise InvalidAmountError(
                "Number of installments must be at least 1", code="INVALID_INSTALLMENTS"
            )

        cancellation = self.db.query(Cancellation).filter(
            Cancellation.id == data.cancellation_id,
            Cancellation.is_active == True
        ).first()
        if not cancellation:
            raise NotFoundError("Cancellation", data.cancellation_id)
        if cancellation.status != CancellationStatus.APPROVED.value:
            raise InvalidStateError(
                f"Cancellation must be approved before scheduling refunds (status: {cancellation.status})",
                code="CANCELLATION_NOT_APPROVED"
            )

        refundable = Decimal(cancellation.refundable_amount)
        if refundable <= 0:
            raise InvalidAmountError("Cancellation has nothing to refund")

        existing = self.db.query(Refund).filter(
            Refund.cancellation_id == cancellation.id,
            Refund.is_active == True
        ).count()
        if existing:
            raise ScheduleAlreadyExistsError(cancellation.id)

        installments = build_installments(
            refundable, data.number_of_installments, data.start_date or date.today()
        )
        if any(amount <= 0 for _, _, amount in installments):
            raise InvalidAmountError(
                f"{refundable} cannot be split into {data.number_of_installments} installments",
                code="INVALID_INSTALLMENTS"
            )

        refunds = [
            Refund(
                cancellation_id=cancellation.id,
                installment_number=number,
                due_date=due_date,
                amount=amount,
                status=RefundStatus.PENDING.value,
                approval_status=ApprovalStatus.DRAFT.value,
                notes=data.notes,
                created_by=user.id
            )
            for number, due_date, amount in installments
        ]
        self.db.add_all(refunds)
        self.db.flush()

        self.audit.log(
            AuditAction.SCHEDULE_CREATED, "Cancellation", cancellation.id,
            description=f"{len(refunds)} refund installments scheduled",
            new_values={"refundable_amount": refundable, "installments": len(refunds)},
            user=user
        )
        logger.info(
            f"Refund schedule for cancellation {cancellation.id}: "
            f"{len(refunds)} installments totalling {refundable}"
        )
        return refunds

    # ==================== WORKFLOW ====================

    def submit(self, refund_id: int, user: User) -> Refund:
        refund = self.get_or_404(refund_id)
        self.workflow.submit(refund)
        self.audit.log(
            AuditAction.SUBMIT, "Refund", refund.id,
            new_values={"approval_status": refund.approval_status}, user=user
        )
        return refund

    def approve(self, refund_id: int, user: User, remarks: Optional[str] = None) -> Refund:
        refund = self.get_or_404(refund_id)
        old_status = refund.approval_status
        self.workflow.approve(refund, user, remarks)
        self.audit.log(
            AuditAction.APPROVE, "Refund", refund.id,
            old_values={"approval_status": old_status},
            new_values={"approval_status": refund.approval_status},
            user=user
        )
        return refund

    def reject(self, refund_id: int, user: User, remarks: Optional[str]) -> Refund:
        refund = self.get_or_404(refund_id)
        old_status = refund.approval_status
        self.workflow.reject(refund, user, remarks, extra_values={"rejection_reason": remarks})
        self.audit.log(
            AuditAction.REJECT, "Refund", refund.id,
            description=remarks,
            old_values={"approval_status": old_status},
            new_values={"approval_status": refund.approval_status},
            user=user
        )
        return refund

    def mark_paid(self, refund_id: int, data: RefundMarkPaid, user: User) -> Refund:
        """Record payment of an approved installment and re-tally the cancellation"""
        refund = self.get_or_404(refund_id)
        if refund.approval_status != ApprovalStatus.APPROVED.value:
            raise NotApprovedError(
                f"Refund must be approved before payment (approval status: {refund.approval_status})"
            )
        if refund.status == RefundStatus.PAID.value:
            raise AlreadyPaidError("Refund has already been paid")
        if refund.status != RefundStatus.PENDING.value:
            raise InvalidStateError(f"Refund cannot be paid (status: {refund.status})")

        instrument = data.instrument_details
        conditional_update(self.db, Refund, refund.id, "status", RefundStatus.PENDING.value, {
            "status": RefundStatus.PAID.value,
            "paid_date": data.paid_date or date.today(),
            "payment_method": data.payment_method.value,
            "instrument_bank_name": instrument.bank_name if instrument else None,
            "instrument_cheque_number": instrument.cheque_number if instrument else None,
            "instrument_cheque_date": instrument.cheque_date if instrument else None,
            "notes": data.notes if data.notes is not None else refund.notes,
        })
        self.db.refresh(refund)

        CancellationService(self.db).update_refunded_amount(refund.cancellation)

        self.audit.log(
            AuditAction.REFUND_PAID, "Refund", refund.id,
            new_values={"amount": refund.amount, "paid_date": refund.paid_date},
            user=user
        )
        return refund

    def get_approval_queue(self, user: User) -> List[Refund]:
        if user.role != UserRole.ADMIN.value:
            raise ForbiddenError("Only administrators can view the refund approval queue")

        return self.db.query(Refund).filter(
            Refund.is_active == True,
            Refund.approval_status.in_(PENDING_APPROVAL_STATUSES)
        ).order_by(Refund.due_date, Refund.id).all()

    # ==================== STATISTICS ====================

    def get_stats(self, cancellation_id: Optional[int] = None) -> Dict:
        base = self.db.query(Refund).filter(Refund.is_active == True)
        if cancellation_id:
            base = base.filter(Refund.cancellation_id == cancellation_id)

        by_status = []
        counts = {}
        amounts = {}
        for status, count, amount in base.with_entities(
            Refund.status, func.count(Refund.id), func.coalesce(func.sum(Refund.amount), 0)
        ).group_by(Refund.status).all():
            counts[status] = count
            amounts[status] = Decimal(str(amount))
            by_status.append({"status": status, "count": count, "total_amount": amounts[status]})

        pending_approvals = base.filter(
            Refund.approval_status.in_(PENDING_APPROVAL_STATUSES)
        ).count()

        return {
            "total_refunds": sum(counts.values()),
            "pending_refunds": counts.get(RefundStatus.PENDING.value, 0),
            "paid_refunds": counts.get(RefundStatus.PAID.value, 0),
            "total_amount": sum(amounts.values(), Decimal("0")),
            "paid_amount": amounts.get(RefundStatus.PAID.value, Decimal("0")),
            "pending_approvals": pending_approvals,
            "by_status": by_status,
        }
