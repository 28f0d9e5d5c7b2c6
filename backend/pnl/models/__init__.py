from pnl.models.audit_log import AuditLog
from pnl.models.catalog import BusinessUnit, Category
from pnl.models.finance_record import FinanceRecord
from pnl.models.legal_entity import LegalEntity
from pnl.models.loan import Loan
from pnl.models.loan_payment import LoanPayment
from pnl.models.safe_settings import SafeSettings

__all__ = [
    "AuditLog",
    "BusinessUnit",
    "Category",
    "FinanceRecord",
    "LegalEntity",
    "Loan",
    "LoanPayment",
    "SafeSettings",
]
