"""
Pydantic Schemas for API Validation
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# ==================== ENUMS ====================

class PaymentMethodEnum(str, Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CHEQUE = "Cheque"
    MOBILE_WALLET = "Mobile Wallet"


class ReceiptTypeEnum(str, Enum):
    BOOKING = "Booking"
    INSTALLMENT = "Installment"
    REGISTRATION = "Registration"
    HANDOVER = "Handover"
    OTHER = "Other"


class ChequeTypeEnum(str, Enum):
    PDC = "PDC"
    CURRENT = "Current"


class BankAccountTypeEnum(str, Enum):
    SAVINGS = "Savings"
    CURRENT = "Current"


# ==================== COMMON ====================

class InstrumentDetails(BaseModel):
    bank_name: Optional[str] = Field(None, max_length=255)
    cheque_number: Optional[str] = Field(None, max_length=100)
    cheque_date: Optional[date] = None


class ApprovalEntry(BaseModel):
    id: int
    approved_by: Optional[int] = None
    role: str
    action: str
    remarks: Optional[str] = None
    approved_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApprovalDecision(BaseModel):
    remarks: Optional[str] = None


class StatusBreakdown(BaseModel):
    status: str
    count: int
    total_amount: Decimal


# ==================== USER SCHEMAS ====================

class UserResponse(BaseModel):
    id: int
    username: str
    full_name: Optional[str] = None
    role: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


# ==================== EXPENSE SCHEMAS ====================

class ExpenseCategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None


class ExpenseCategoryResponse(ExpenseCategoryCreate):
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class ExpenseCreate(BaseModel):
    category_id: int
    amount: Decimal
    expense_date: Optional[date] = None
    vendor: Optional[str] = Field(None, max_length=255)
    description: str = Field(..., min_length=1)
    payment_method: PaymentMethodEnum
    instrument_details: Optional[InstrumentDetails] = None
    notes: Optional[str] = None


class ExpenseUpdate(BaseModel):
    category_id: Optional[int] = None
    amount: Optional[Decimal] = None
    expense_date: Optional[date] = None
    vendor: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    payment_method: Optional[PaymentMethodEnum] = None
    instrument_details: Optional[InstrumentDetails] = None
    notes: Optional[str] = None


class ExpenseResponse(BaseModel):
    id: int
    expense_number: str
    category_id: int
    amount: Decimal
    expense_date: date
    vendor: Optional[str] = None
    description: str
    payment_method: str
    instrument_bank_name: Optional[str] = None
    instrument_cheque_number: Optional[str] = None
    instrument_cheque_date: Optional[date] = None
    notes: Optional[str] = None
    status: str
    is_active: bool
    created_by: Optional[int] = None
    created_at: datetime
    approval_history: List[ApprovalEntry] = []

    model_config = ConfigDict(from_attributes=True)


class CategoryBreakdown(BaseModel):
    category_id: int
    category_name: Optional[str] = None
    count: int
    total_amount: Decimal


class ExpenseStats(BaseModel):
    total_expenses: int
    total_amount: Decimal
    approved_count: int
    approved_amount: Decimal
    pending_approvals: int
    by_status: List[StatusBreakdown] = []
    category_breakdown: List[CategoryBreakdown] = []


# ==================== SALE SCHEMAS ====================

class ClientCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None


class ClientResponse(ClientCreate):
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class SaleCreate(BaseModel):
    sale_number: str = Field(..., min_length=1, max_length=50)
    client_id: int
    total_price: Decimal = Field(..., gt=0)
    paid_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    sale_date: Optional[date] = None


class SaleResponse(BaseModel):
    id: int
    sale_number: str
    client_id: int
    total_price: Decimal
    paid_amount: Decimal
    sale_date: Optional[date] = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class ReceiptCreate(BaseModel):
    sale_id: int
    receipt_type: ReceiptTypeEnum = ReceiptTypeEnum.INSTALLMENT
    amount: Decimal
    payment_method: PaymentMethodEnum
    receipt_date: Optional[date] = None
    instrument_details: Optional[InstrumentDetails] = None
    notes: Optional[str] = None


class ReceiptResponse(BaseModel):
    id: int
    receipt_number: str
    client_id: int
    sale_id: int
    receipt_type: str
    amount: Decimal
    payment_method: str
    receipt_date: date
    instrument_bank_name: Optional[str] = None
    instrument_cheque_number: Optional[str] = None
    instrument_cheque_date: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== CANCELLATION SCHEMAS ====================

class CancellationCreate(BaseModel):
    sale_id: Optional[int] = None
    reason: Optional[str] = None
    office_charge_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    other_deductions: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None


class CancellationUpdate(BaseModel):
    reason: Optional[str] = None
    office_charge_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    other_deductions: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None


class CancellationApprove(BaseModel):
    notes: Optional[str] = None


class CancellationReject(BaseModel):
    reason: Optional[str] = None


class CancellationResponse(BaseModel):
    id: int
    sale_id: int
    cancellation_date: date
    reason: str
    total_paid: Decimal
    office_charge_percent: Decimal
    office_charge_amount: Decimal
    other_deductions: Decimal
    refundable_amount: Decimal
    refunded_amount: Decimal
    remaining_refund: Decimal
    status: str
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== REFUND SCHEMAS ====================

class RefundScheduleCreate(BaseModel):
    cancellation_id: Optional[int] = None
    number_of_installments: Optional[int] = None
    start_date: Optional[date] = None
    notes: Optional[str] = None


class RefundMarkPaid(BaseModel):
    payment_method: PaymentMethodEnum
    paid_date: Optional[date] = None
    instrument_details: Optional[InstrumentDetails] = None
    notes: Optional[str] = None


class RefundResponse(BaseModel):
    id: int
    cancellation_id: int
    installment_number: int
    due_date: date
    amount: Decimal
    status: str
    approval_status: str
    paid_date: Optional[date] = None
    payment_method: Optional[str] = None
    instrument_bank_name: Optional[str] = None
    instrument_cheque_number: Optional[str] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    approval_history: List[ApprovalEntry] = []

    model_config = ConfigDict(from_attributes=True)


class CancellationWithRefunds(CancellationResponse):
    refunds: List[RefundResponse] = []


class RefundStats(BaseModel):
    total_refunds: int
    pending_refunds: int
    paid_refunds: int
    total_amount: Decimal
    paid_amount: Decimal
    pending_approvals: int
    by_status: List[StatusBreakdown] = []


# ==================== CHEQUE SCHEMAS ====================

class ChequeCreate(BaseModel):
    cheque_number: Optional[str] = Field(None, max_length=100)
    bank_name: Optional[str] = Field(None, max_length=255)
    branch_name: Optional[str] = Field(None, max_length=255)
    cheque_type: ChequeTypeEnum = ChequeTypeEnum.CURRENT
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    amount: Optional[Decimal] = None
    client_id: Optional[int] = None
    sale_id: Optional[int] = None
    receipt_id: Optional[int] = None
    refund_id: Optional[int] = None
    notes: Optional[str] = None


class ChequeUpdate(BaseModel):
    cheque_number: Optional[str] = Field(None, max_length=100)
    bank_name: Optional[str] = Field(None, max_length=255)
    branch_name: Optional[str] = Field(None, max_length=255)
    cheque_type: Optional[ChequeTypeEnum] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    amount: Optional[Decimal] = None
    notes: Optional[str] = None


class ChequeClear(BaseModel):
    cleared_date: Optional[date] = None


class ChequeBounce(BaseModel):
    bounce_reason: Optional[str] = None
    bounce_date: Optional[date] = None


class ChequeCancel(BaseModel):
    cancel_reason: Optional[str] = None
    cancel_date: Optional[date] = None


class ChequeResponse(BaseModel):
    id: int
    cheque_number: str
    bank_name: str
    branch_name: Optional[str] = None
    cheque_type: str
    issue_date: date
    due_date: date
    amount: Decimal
    client_id: int
    sale_id: Optional[int] = None
    receipt_id: Optional[int] = None
    refund_id: Optional[int] = None
    status: str
    cleared_date: Optional[date] = None
    cleared_by: Optional[int] = None
    bounce_date: Optional[date] = None
    bounce_reason: Optional[str] = None
    bounced_by: Optional[int] = None
    cancelled_date: Optional[date] = None
    cancelled_reason: Optional[str] = None
    cancelled_by: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChequeStats(BaseModel):
    total_cheques: int
    total_amount: Decimal
    cleared_amount: Decimal
    pending_amount: Decimal
    by_status: List[StatusBreakdown] = []


class SweepResult(BaseModel):
    due_today: int
    overdue: int


# ==================== PAYROLL SCHEMAS ====================

class EmployeeCreate(BaseModel):
    employee_code: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=2, max_length=255)
    designation: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    join_date: Optional[date] = None


class EmployeeResponse(EmployeeCreate):
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class EmployeeCostBase(BaseModel):
    salary: Decimal = Field(default=Decimal("0.00"), ge=0)
    commission: Decimal = Field(default=Decimal("0.00"), ge=0)
    fuel: Decimal = Field(default=Decimal("0.00"), ge=0)
    entertainment: Decimal = Field(default=Decimal("0.00"), ge=0)
    advances: Decimal = Field(default=Decimal("0.00"), ge=0)
    deductions: Decimal = Field(default=Decimal("0.00"), ge=0)
    bonus: Decimal = Field(default=Decimal("0.00"), ge=0)
    overtime: Decimal = Field(default=Decimal("0.00"), ge=0)
    other_allowances: Decimal = Field(default=Decimal("0.00"), ge=0)
    payment_date: Optional[date] = None
    payment_method: Optional[PaymentMethodEnum] = None
    notes: Optional[str] = Field(None, max_length=1000)


class EmployeeCostCreate(EmployeeCostBase):
    employee_id: int
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)


class EmployeeCostUpdate(BaseModel):
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=2000, le=2100)
    salary: Optional[Decimal] = Field(None, ge=0)
    commission: Optional[Decimal] = Field(None, ge=0)
    fuel: Optional[Decimal] = Field(None, ge=0)
    entertainment: Optional[Decimal] = Field(None, ge=0)
    advances: Optional[Decimal] = Field(None, ge=0)
    deductions: Optional[Decimal] = Field(None, ge=0)
    bonus: Optional[Decimal] = Field(None, ge=0)
    overtime: Optional[Decimal] = Field(None, ge=0)
    other_allowances: Optional[Decimal] = Field(None, ge=0)
    payment_date: Optional[date] = None
    payment_method: Optional[PaymentMethodEnum] = None
    notes: Optional[str] = Field(None, max_length=1000)


class EmployeeCostResponse(EmployeeCostBase):
    id: int
    employee_id: int
    month: int
    year: int
    net_pay: Decimal
    payment_method: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PayrollSummary(BaseModel):
    total_employees: int = 0
    total_salary: Decimal = Decimal("0")
    total_commission: Decimal = Decimal("0")
    total_fuel: Decimal = Decimal("0")
    total_entertainment: Decimal = Decimal("0")
    total_bonus: Decimal = Decimal("0")
    total_overtime: Decimal = Decimal("0")
    total_other_allowances: Decimal = Decimal("0")
    total_advances: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    total_net_pay: Decimal = Decimal("0")


# ==================== LEDGER SCHEMAS ====================

class LedgerResponse(BaseModel):
    id: int
    transaction_date: date
    account: str
    account_type: str
    debit: Decimal
    credit: Decimal
    transaction_type: str
    reference_model: Optional[str] = None
    reference_id: Optional[int] = None
    reference_number: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ==================== BANKING SCHEMAS ====================

class BankAccountBase(BaseModel):
    account_name: str = Field(..., min_length=2, max_length=255)
    bank_name: str = Field(..., min_length=2, max_length=255)
    branch_name: Optional[str] = Field(None, max_length=255)
    account_number: str = Field(..., min_length=1, max_length=50)
    account_type: BankAccountTypeEnum = BankAccountTypeEnum.CURRENT


class BankAccountCreate(BankAccountBase):
    opening_balance: Decimal = Field(default=Decimal("0.00"), ge=0)


class BankAccountUpdate(BaseModel):
    account_name: Optional[str] = Field(None, min_length=2, max_length=255)
    bank_name: Optional[str] = Field(None, min_length=2, max_length=255)
    branch_name: Optional[str] = Field(None, max_length=255)
    account_type: Optional[BankAccountTypeEnum] = None


class BankAccountResponse(BankAccountBase):
    id: int
    account_type: str
    opening_balance: Decimal
    current_balance: Decimal
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CashAccountCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = None
    opening_balance: Decimal = Field(default=Decimal("0.00"), ge=0)


class CashAccountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = None


class CashAccountResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    opening_balance: Decimal
    current_balance: Decimal
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
