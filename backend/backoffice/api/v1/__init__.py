# API v1 Package
from backoffice.api.v1 import expenses, cancellations, refunds, cheques, payroll, banking, ledger, sales

__all__ = [
    'expenses',
    'cancellations',
    'refunds',
    'cheques',
    'payroll',
    'banking',
    'ledger',
    'sales',
]
