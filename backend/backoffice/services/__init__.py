# Services Package
from backoffice.services.audit_service import AuditService, AuditAction
from backoffice.services.ledger_service import LedgerService
from backoffice.services.expense_service import ExpenseService, ExpenseCategoryService
from backoffice.services.sales_service import ClientService, SaleService
from backoffice.services.cancellation_service import CancellationService
from backoffice.services.refund_service import RefundService, build_installments
from backoffice.services.cheque_service import ChequeService
from backoffice.services.employee_cost_service import EmployeeService, EmployeeCostService
from backoffice.services.banking_service import BankAccountService, CashAccountService

__all__ = [
    'AuditService',
    'AuditAction',
    'LedgerService',
    'ExpenseService',
    'ExpenseCategoryService',
    'ClientService',
    'SaleService',
    'CancellationService',
    'RefundService',
    'build_installments',
    'ChequeService',
    'EmployeeService',
    'EmployeeCostService',
    'BankAccountService',
    'CashAccountService',
]
