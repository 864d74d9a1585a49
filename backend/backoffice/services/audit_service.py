"""
Audit Logging Service
Records who moved which record through which workflow step
"""
from sqlalchemy.orm import Session
from typing import Optional, Dict
import json
import logging

from backoffice.models import AuditLog, User

logger = logging.getLogger(__name__)


class AuditAction:
    """Constants for audit actions"""
    # CRUD Operations
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    # Approval workflow
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"

    # Refunds
    SCHEDULE_CREATED = "SCHEDULE_CREATED"
    REFUND_PAID = "REFUND_PAID"

    # Cheques
    CHEQUE_CLEARED = "CHEQUE_CLEARED"
    CHEQUE_BOUNCED = "CHEQUE_BOUNCED"
    CHEQUE_CANCELLED = "CHEQUE_CANCELLED"

    # Accounting
    LEDGER_POSTED = "LEDGER_POSTED"


class AuditService:
    """Service for recording and retrieving audit logs"""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[int] = None,
        description: Optional[str] = None,
        old_values: Optional[Dict] = None,
        new_values: Optional[Dict] = None,
        user: Optional[User] = None,
        status: str = "success"
    ) -> AuditLog:
        """
        Add an audit log entry to the current transaction.

        Args:
            action: The action being performed (use AuditAction constants)
            resource_type: Type of resource being affected (e.g., 'Expense', 'Cheque')
            resource_id: ID of the affected resource
            description: Human-readable description of the action
            old_values: Dictionary of values before the change
            new_values: Dictionary of values after the change
            user: The principal performing the action
            status: 'success', 'failure', or 'error'

        The row is written when the request commits, so a rolled-back
        operation leaves no audit trail behind.
        """
        audit_log = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            description=description,
            old_values=json.dumps(old_values, default=str) if old_values else None,
            new_values=json.dumps(new_values, default=str) if new_values else None,
            user_id=user.id if user else None,
            username=user.username if user else None,
            role=user.role if user else None,
            status=status
        )
        self.db.add(audit_log)

        logger.info(
            f"Audit: {action} {resource_type}(id={resource_id}) "
            f"by user={user.username if user else None} status={status}"
        )
        return audit_log
