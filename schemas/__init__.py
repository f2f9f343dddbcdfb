from .bill import (
     LineItemsIn,
     BillCreate,
     BillUpdate,
     BillReject,
     BillResponse,
     BillListResponse,
)
from .payment import (
     PaymentResponse,
     PaymentListResponse,
     SettlementResponse,
     CheckoutRequest,
     CheckoutResponse,
     GatewayConfirmRequest,
     CreditBalanceResponse,
)

__all__ = [
     "LineItemsIn",
     "BillCreate",
     "BillUpdate",
     "BillReject",
     "BillResponse",
     "BillListResponse",
     "PaymentResponse",
     "PaymentListResponse",
     "SettlementResponse",
     "CheckoutRequest",
     "CheckoutResponse",
     "GatewayConfirmRequest",
     "CreditBalanceResponse",
]
