from .bill_ledger import (
     LineItems,
     bill_total,
     issue,
     edit,
     cancel,
     transition,
     generate_scheduled_rent_bills,
)
from .contract_limits import ContractLimits, compute_contract_limits
from .credit_ledger import get_credit_balance, add_credit, deduct_credit
from .payment_intake import submit, quote, record_gateway_payment
from .settlement import SettlementResult, confirm, reject, pay_with_credit, confirm_gateway
from .ledger_service import (
     compute_transaction_hash,
     append_payment_record,
     verify_payment_record,
     verify_full_chain,
     list_payments,
     GENESIS_HASH,
)

__all__ = [
     "LineItems",
     "bill_total",
     "issue",
     "edit",
     "cancel",
     "transition",
     "generate_scheduled_rent_bills",
     "ContractLimits",
     "compute_contract_limits",
     "get_credit_balance",
     "add_credit",
     "deduct_credit",
     "submit",
     "quote",
     "record_gateway_payment",
     "SettlementResult",
     "confirm",
     "reject",
     "pay_with_credit",
     "confirm_gateway",
     "compute_transaction_hash",
     "append_payment_record",
     "verify_payment_record",
     "verify_full_chain",
     "list_payments",
     "GENESIS_HASH",
]
