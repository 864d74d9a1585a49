"""
Real-estate back office API: expense and refund approvals, sale
cancellations, cheque tracking and payroll costs.
"""
__version__ = "1.0.0"
