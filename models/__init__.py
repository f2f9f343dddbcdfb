from .base import Base
from .tenancy import Tenancy, TenancyStatus
from .bill import Bill, BillStatus, PaymentMethod, ALLOWED_TRANSITIONS
from .payment import Payment
from .credit_balance import CreditBalance
from .job_run import AutomatedJobRun

__all__ = [
     "Base",
     "Tenancy",
     "TenancyStatus",
     "Bill",
     "BillStatus",
     "PaymentMethod",
     "ALLOWED_TRANSITIONS",
     "Payment",
     "CreditBalance",
     "AutomatedJobRun",
]
