"""
Two-stage approval workflow shared by expenses and refund installments.

Draft -> Pending Accounts -> Pending HOF -> Approved, with Rejected reachable
from either pending stage. Each stage names the roles allowed to approve it
and the status it advances to. Every transition is a conditional UPDATE on the
status the caller observed, so a concurrent transition makes the loser fail
with InvalidStateError instead of overwriting the winner.
"""
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple, Type
from sqlalchemy.orm import Session
import logging

from backoffice.core.exceptions import (
    BackofficeError, InvalidStateError, MissingFieldError, UnauthorizedError
)
from backoffice.core.security import has_role
from backoffice.models import (
    ApprovalAction, ApprovalStatus, UserRole, PENDING_APPROVAL_STATUSES, User
)

logger = logging.getLogger(__name__)

# pending status -> (roles allowed to approve, status after approval)
Stages = Dict[str, Tuple[Tuple[UserRole, ...], str]]

EXPENSE_STAGES: Stages = {
    ApprovalStatus.PENDING_ACCOUNTS.value: ((UserRole.ACCOUNT_MANAGER,), ApprovalStatus.PENDING_HOF.value),
    ApprovalStatus.PENDING_HOF.value: ((UserRole.HOF,), ApprovalStatus.APPROVED.value),
}

REFUND_STAGES: Stages = {
    ApprovalStatus.PENDING_ACCOUNTS.value: (
        (UserRole.ADMIN, UserRole.ACCOUNT_MANAGER), ApprovalStatus.PENDING_HOF.value
    ),
    ApprovalStatus.PENDING_HOF.value: ((UserRole.ADMIN, UserRole.HOF), ApprovalStatus.APPROVED.value),
}


def conditional_update(db: Session, model, record_id: int, status_field: str,
                       expected: str, values: dict) -> None:
    """
    UPDATE model SET values WHERE id = record_id AND status_field = expected.

    Raises InvalidStateError when no row matched, i.e. the record left the
    expected status after it was read.
    """
    column = getattr(model, status_field)
    updated = db.query(model).filter(
        model.id == record_id,
        column == expected
    ).update(values, synchronize_session=False)

    if updated == 0:
        logger.info(
            f"Stale transition on {model.__name__} {record_id}: expected {status_field}={expected!r}"
        )
        raise InvalidStateError(
            f"{model.__name__} {record_id} was modified concurrently; reload and retry"
        )


class ApprovalWorkflow:
    """Drives one record type through the approval stages."""

    def __init__(
        self,
        db: Session,
        model,
        history_model,
        history_fk: str,
        stages: Stages,
        status_field: str = "status",
        role_error: Type[BackofficeError] = UnauthorizedError,
    ):
        self.db = db
        self.model = model
        self.history_model = history_model
        self.history_fk = history_fk
        self.stages = stages
        self.status_field = status_field
        self.role_error = role_error

    @property
    def label(self) -> str:
        return self.model.__name__

    def current_status(self, record) -> str:
        return getattr(record, self.status_field)

    def allowed_roles(self, status: str) -> Iterable[UserRole]:
        stage = self.stages.get(status)
        return stage[0] if stage else ()

    def transition(self, record, expected: str, values: dict) -> None:
        conditional_update(self.db, self.model, record.id, self.status_field, expected, values)
        self.db.refresh(record)

    def _add_history(self, record, user: User, action: ApprovalAction, remarks: Optional[str]):
        entry = self.history_model(
            approved_by=user.id,
            role=user.role,
            action=action.value,
            remarks=remarks,
            approved_at=datetime.utcnow(),
        )
        setattr(entry, self.history_fk, record.id)
        self.db.add(entry)
        self.db.flush()
        self.db.refresh(record)
        return entry

    def submit(self, record) -> str:
        status = self.current_status(record)
        if status != ApprovalStatus.DRAFT.value:
            raise InvalidStateError(
                f"Only draft {self.label.lower()}s can be submitted (status: {status})"
            )

        new_status = ApprovalStatus.PENDING_ACCOUNTS.value
        self.transition(record, status, {self.status_field: new_status})
        logger.info(f"{self.label} {record.id} submitted for approval")
        return new_status

    def approve(self, record, user: User, remarks: Optional[str] = None) -> str:
        """Advance one stage. Returns the new status."""
        status = self.current_status(record)
        stage = self.stages.get(status)
        if stage is None:
            raise InvalidStateError(
                f"{self.label} is not pending approval (status: {status})"
            )

        roles, next_status = stage
        if not has_role(user.role, roles):
            raise self.role_error(
                f"Role {user.role} cannot approve a {self.label.lower()} at stage {status}"
            )

        self.transition(record, status, {self.status_field: next_status})
        self._add_history(record, user, ApprovalAction.APPROVED, remarks)
        logger.info(f"{self.label} {record.id} approved by {user.username}: {status} -> {next_status}")
        return next_status

    def reject(self, record, user: User, remarks: Optional[str], extra_values: Optional[dict] = None) -> str:
        if not remarks or not remarks.strip():
            raise MissingFieldError("remarks", "Remarks are required for rejection", code="REMARKS_REQUIRED")

        status = self.current_status(record)
        if status not in PENDING_APPROVAL_STATUSES:
            raise InvalidStateError(
                f"{self.label} is not pending approval (status: {status})"
            )

        values = {self.status_field: ApprovalStatus.REJECTED.value}
        if extra_values:
            values.update(extra_values)

        self.transition(record, status, values)
        self._add_history(record, user, ApprovalAction.REJECTED, remarks)
        logger.info(f"{self.label} {record.id} rejected by {user.username} at stage {status}")
        return ApprovalStatus.REJECTED.value
