"""Economy subsystem — conversion, allocation, ledger, transfers, approvals.

Every engine here is a pure domain component operating on an Account it
is handed. Audit events, persistence and notification are the service
layer's job.
"""

from famcoin.economy.allocation import AllocationEngine
from famcoin.economy.approval import ApprovalWorkflow, PendingPurchases
from famcoin.economy.currency import CurrencyConverter
from famcoin.economy.ledger import TransactionLedger
from famcoin.economy.transfers import TransferEngine

__all__ = [
    "AllocationEngine",
    "ApprovalWorkflow",
    "CurrencyConverter",
    "PendingPurchases",
    "TransactionLedger",
    "TransferEngine",
]
