"""
SQLAlchemy Models for the Real Estate Back Office
"""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric,
    ForeignKey, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
import enum

from backoffice.core.database import Base


# ==================== ENUMS ====================

class UserRole(enum.Enum):
    ADMIN = "Admin"
    ACCOUNT_MANAGER = "AccountManager"
    HOF = "HOF"  # Head of Finance


class ApprovalStatus(enum.Enum):
    """Two-stage approval shared by expenses and refund installments"""
    DRAFT = "Draft"
    PENDING_ACCOUNTS = "Pending Accounts"
    PENDING_HOF = "Pending HOF"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ApprovalAction(enum.Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"


class PaymentMethod(enum.Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CHEQUE = "Cheque"
    MOBILE_WALLET = "Mobile Wallet"


class RefundStatus(enum.Enum):
    PENDING = "Pending"
    PAID = "Paid"
    CANCELLED = "Cancelled"


class CancellationStatus(enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    REFUNDED = "Refunded"
    PARTIAL_REFUND = "Partial Refund"


class SaleStatus(enum.Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ReceiptType(enum.Enum):
    BOOKING = "Booking"
    INSTALLMENT = "Installment"
    REGISTRATION = "Registration"
    HANDOVER = "Handover"
    OTHER = "Other"


class ChequeStatus(enum.Enum):
    PENDING = "Pending"
    DUE_TODAY = "Due Today"
    OVERDUE = "Overdue"
    CLEARED = "Cleared"
    BOUNCED = "Bounced"
    CANCELLED = "Cancelled"


class ChequeType(enum.Enum):
    PDC = "PDC"  # Post-Dated Cheque
    CURRENT = "Current"


class AccountType(enum.Enum):
    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSE = "Expense"


class TransactionType(enum.Enum):
    RECEIPT = "Receipt"
    PAYMENT = "Payment"
    SALE = "Sale"
    REFUND = "Refund"
    EXPENSE = "Expense"
    ADJUSTMENT = "Adjustment"
    OPENING_BALANCE = "Opening Balance"


class BankAccountType(enum.Enum):
    SAVINGS = "Savings"
    CURRENT = "Current"


# Statuses after which a cheque can no longer change
CHEQUE_TERMINAL_STATUSES = (
    ChequeStatus.CLEARED.value,
    ChequeStatus.BOUNCED.value,
    ChequeStatus.CANCELLED.value,
)

PENDING_APPROVAL_STATUSES = (
    ApprovalStatus.PENDING_ACCOUNTS.value,
    ApprovalStatus.PENDING_HOF.value,
)


# ==================== CORE MODELS ====================

class User(Base):
    """Authenticated principal. Credentials live with the identity provider."""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    username = Column(String(100), nullable=False, unique=True)
    email = Column(String(255), nullable=True, unique=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False, default=UserRole.ACCOUNT_MANAGER.value)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ==================== CLIENTS & SALES ====================

class Client(Base):
    """Buyer of a plot"""
    __tablename__ = 'clients'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    sales = relationship("Sale", back_populates="client")


class Sale(Base):
    """Plot sale to a client"""
    __tablename__ = 'sales'

    id = Column(Integer, primary_key=True)
    sale_number = Column(String(50), nullable=False, unique=True)
    client_id = Column(Integer, ForeignKey('clients.id', ondelete='RESTRICT'), nullable=False)
    total_price = Column(Numeric(15, 2), nullable=False)
    paid_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    sale_date = Column(Date, nullable=True)
    status = Column(String(50), default=SaleStatus.ACTIVE.value)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="sales")
    cancellation = relationship("Cancellation", back_populates="sale", uselist=False)
    receipts = relationship("Receipt", back_populates="sale", order_by="Receipt.id")


class Receipt(Base):
    """Money received against a sale"""
    __tablename__ = 'receipts'

    id = Column(Integer, primary_key=True)
    receipt_number = Column(String(50), nullable=False, unique=True)
    client_id = Column(Integer, ForeignKey('clients.id', ondelete='RESTRICT'), nullable=False)
    sale_id = Column(Integer, ForeignKey('sales.id', ondelete='RESTRICT'), nullable=False)
    receipt_type = Column(String(20), nullable=False, default=ReceiptType.INSTALLMENT.value)
    amount = Column(Numeric(15, 2), nullable=False)
    payment_method = Column(String(50), nullable=False)
    receipt_date = Column(Date, nullable=False)
    instrument_bank_name = Column(String(255), nullable=True)
    instrument_cheque_number = Column(String(100), nullable=True)
    instrument_cheque_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Client")
    sale = relationship("Sale", back_populates="receipts")

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_receipt_amount_positive'),
        Index('ix_receipts_sale_id', 'sale_id'),
    )


# ==================== EXPENSES ====================

class ExpenseCategory(Base):
    __tablename__ = 'expense_categories'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    expenses = relationship("Expense", back_populates="category")


class Expense(Base):
    """Expense awaiting or past two-stage approval"""
    __tablename__ = 'expenses'

    id = Column(Integer, primary_key=True)
    expense_number = Column(String(50), nullable=False, unique=True)
    category_id = Column(Integer, ForeignKey('expense_categories.id', ondelete='RESTRICT'), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    expense_date = Column(Date, nullable=False)
    vendor = Column(String(255), nullable=True)
    description = Column(Text, nullable=False)
    payment_method = Column(String(50), nullable=False)
    # Instrument details (cheque payments)
    instrument_bank_name = Column(String(255), nullable=True)
    instrument_cheque_number = Column(String(100), nullable=True)
    instrument_cheque_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default=ApprovalStatus.DRAFT.value)
    is_active = Column(Boolean, default=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    category = relationship("ExpenseCategory", back_populates="expenses")
    creator = relationship("User")
    approval_history = relationship(
        "ExpenseApproval",
        back_populates="expense",
        order_by="ExpenseApproval.id",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_expense_amount_positive'),
        Index('ix_expenses_status', 'status'),
        Index('ix_expenses_expense_date', 'expense_date'),
    )


class ExpenseApproval(Base):
    """One approve/reject step in an expense's approval history"""
    __tablename__ = 'expense_approvals'

    id = Column(Integer, primary_key=True)
    expense_id = Column(Integer, ForeignKey('expenses.id', ondelete='CASCADE'), nullable=False)
    approved_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    role = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)
    remarks = Column(Text, nullable=True)
    approved_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    expense = relationship("Expense", back_populates="approval_history")
    approver = relationship("User")


# ==================== CANCELLATIONS & REFUNDS ====================

class Cancellation(Base):
    """Cancellation of a sale; drives the refund schedule once approved"""
    __tablename__ = 'cancellations'

    id = Column(Integer, primary_key=True)
    sale_id = Column(Integer, ForeignKey('sales.id', ondelete='RESTRICT'), nullable=False)
    cancellation_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False)
    total_paid = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    office_charge_percent = Column(Numeric(5, 2), nullable=False, default=Decimal("10.00"))
    office_charge_amount = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    other_deductions = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    refundable_amount = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    refunded_amount = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    remaining_refund = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    status = Column(String(50), nullable=False, default=CancellationStatus.PENDING.value)
    approved_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sale = relationship("Sale", back_populates="cancellation")
    refunds = relationship("Refund", back_populates="cancellation", order_by="Refund.installment_number")

    __table_args__ = (
        Index('ix_cancellations_status', 'status', 'is_active'),
    )


class Refund(Base):
    """One installment of a cancellation's refund schedule"""
    __tablename__ = 'refunds'

    id = Column(Integer, primary_key=True)
    cancellation_id = Column(Integer, ForeignKey('cancellations.id', ondelete='RESTRICT'), nullable=False)
    installment_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    status = Column(String(20), nullable=False, default=RefundStatus.PENDING.value)
    approval_status = Column(String(50), nullable=False, default=ApprovalStatus.DRAFT.value)
    paid_date = Column(Date, nullable=True)
    payment_method = Column(String(50), nullable=True)
    instrument_bank_name = Column(String(255), nullable=True)
    instrument_cheque_number = Column(String(100), nullable=True)
    instrument_cheque_date = Column(Date, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cancellation = relationship("Cancellation", back_populates="refunds")
    approval_history = relationship(
        "RefundApproval",
        back_populates="refund",
        order_by="RefundApproval.id",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index('ix_refunds_cancellation_id', 'cancellation_id'),
        Index('ix_refunds_approval_status', 'approval_status'),
        Index('ix_refunds_due_date', 'due_date'),
    )


class RefundApproval(Base):
    """One approve/reject step in a refund installment's approval history"""
    __tablename__ = 'refund_approvals'

    id = Column(Integer, primary_key=True)
    refund_id = Column(Integer, ForeignKey('refunds.id', ondelete='CASCADE'), nullable=False)
    approved_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    role = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)
    remarks = Column(Text, nullable=True)
    approved_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    refund = relationship("Refund", back_populates="approval_history")
    approver = relationship("User")


# ==================== CHEQUES ====================

class Cheque(Base):
    """Cheque received from (or issued to) a client"""
    __tablename__ = 'cheques'

    id = Column(Integer, primary_key=True)
    cheque_number = Column(String(100), nullable=False)
    bank_name = Column(String(255), nullable=False)
    branch_name = Column(String(255), nullable=True)
    cheque_type = Column(String(20), nullable=False, default=ChequeType.CURRENT.value)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    client_id = Column(Integer, ForeignKey('clients.id', ondelete='RESTRICT'), nullable=False)
    sale_id = Column(Integer, ForeignKey('sales.id', ondelete='SET NULL'), nullable=True)
    receipt_id = Column(Integer, ForeignKey('receipts.id', ondelete='SET NULL'), nullable=True)
    refund_id = Column(Integer, ForeignKey('refunds.id', ondelete='SET NULL'), nullable=True)
    status = Column(String(20), nullable=False, default=ChequeStatus.PENDING.value)
    cleared_date = Column(Date, nullable=True)
    cleared_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    bounce_date = Column(Date, nullable=True)
    bounce_reason = Column(Text, nullable=True)
    bounced_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    cancelled_date = Column(Date, nullable=True)
    cancelled_reason = Column(Text, nullable=True)
    cancelled_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    notes = Column(Text, nullable=True)
    is_deleted = Column(Boolean, default=False)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client")
    sale = relationship("Sale")
    receipt = relationship("Receipt")
    refund = relationship("Refund")

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_cheque_amount_positive'),
        Index('ix_cheques_status_due_date', 'status', 'due_date'),
        Index('ix_cheques_client_id', 'client_id'),
    )


# ==================== PAYROLL ====================

class Employee(Base):
    """Employee"""
    __tablename__ = 'employees'

    id = Column(Integer, primary_key=True)
    employee_code = Column(String(50), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    designation = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    join_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    costs = relationship("EmployeeCost", back_populates="employee")


class EmployeeCost(Base):
    """Monthly payroll cost of one employee"""
    __tablename__ = 'employee_costs'

    id = Column(Integer, primary_key=True)
    employee_id = Column(Integer, ForeignKey('employees.id', ondelete='RESTRICT'), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    salary = Column(Numeric(15, 2), default=Decimal("0.00"))
    commission = Column(Numeric(15, 2), default=Decimal("0.00"))
    fuel = Column(Numeric(15, 2), default=Decimal("0.00"))
    entertainment = Column(Numeric(15, 2), default=Decimal("0.00"))
    advances = Column(Numeric(15, 2), default=Decimal("0.00"))
    deductions = Column(Numeric(15, 2), default=Decimal("0.00"))
    bonus = Column(Numeric(15, 2), default=Decimal("0.00"))
    overtime = Column(Numeric(15, 2), default=Decimal("0.00"))
    other_allowances = Column(Numeric(15, 2), default=Decimal("0.00"))
    net_pay = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    payment_date = Column(Date, nullable=True)
    payment_method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    employee = relationship("Employee", back_populates="costs")

    __table_args__ = (
        UniqueConstraint('employee_id', 'year', 'month', name='uq_employee_cost_period'),
        CheckConstraint('month >= 1 AND month <= 12', name='ck_employee_cost_month'),
        Index('ix_employee_costs_period', 'year', 'month'),
    )


# ==================== ACCOUNTING ====================

class Ledger(Base):
    """Double-entry ledger row"""
    __tablename__ = 'ledger'

    id = Column(Integer, primary_key=True)
    transaction_date = Column(Date, nullable=False)
    account = Column(String(100), nullable=False)
    account_type = Column(String(20), nullable=False)
    debit = Column(Numeric(15, 2), default=Decimal("0.00"))
    credit = Column(Numeric(15, 2), default=Decimal("0.00"))
    transaction_type = Column(String(50), nullable=False)
    reference_model = Column(String(50), nullable=True)
    reference_id = Column(Integer, nullable=True)
    reference_number = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint('debit >= 0 AND credit >= 0', name='ck_ledger_non_negative'),
        Index('ix_ledger_reference', 'reference_model', 'reference_id'),
        Index('ix_ledger_transaction_date', 'transaction_date'),
        Index('ix_ledger_account', 'account'),
    )


# ==================== BANKING ====================

class BankAccount(Base):
    """Bank Account"""
    __tablename__ = 'bank_accounts'

    id = Column(Integer, primary_key=True)
    account_name = Column(String(255), nullable=False)
    bank_name = Column(String(255), nullable=False)
    branch_name = Column(String(255), nullable=True)
    account_number = Column(String(50), nullable=False, unique=True)
    account_type = Column(String(20), default=BankAccountType.CURRENT.value)
    opening_balance = Column(Numeric(15, 2), default=Decimal("0.00"))
    current_balance = Column(Numeric(15, 2), default=Decimal("0.00"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CashAccount(Base):
    """Cash in hand / petty cash account"""
    __tablename__ = 'cash_accounts'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    opening_balance = Column(Numeric(15, 2), default=Decimal("0.00"))
    current_balance = Column(Numeric(15, 2), default=Decimal("0.00"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ==================== AUDIT ====================

class AuditLog(Base):
    """Audit trail for sensitive operations"""
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Who performed the action
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    username = Column(String(100), nullable=True)  # Kept in case the user is removed
    role = Column(String(50), nullable=True)

    # What action was performed
    action = Column(String(50), nullable=False)
    resource_type = Column(String(100), nullable=False)
    resource_id = Column(Integer, nullable=True)

    # Details
    description = Column(Text, nullable=True)
    old_values = Column(Text, nullable=True)  # JSON
    new_values = Column(Text, nullable=True)  # JSON
    status = Column(String(20), default='success')

    user = relationship("User")

    __table_args__ = (
        Index('ix_audit_logs_timestamp', 'timestamp'),
        Index('ix_audit_logs_resource', 'resource_type', 'resource_id'),
        Index('ix_audit_logs_action', 'action'),
    )
