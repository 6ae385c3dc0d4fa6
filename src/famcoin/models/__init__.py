"""Core data models for the FamCoin economy."""

from famcoin.models.account import (
    Account,
    AccountMode,
    AccountSettings,
    AccountStats,
)
from famcoin.models.ledger import Receipt, Transaction, TransactionType
from famcoin.models.purchase import PurchaseRequest, PurchaseStatus

__all__ = [
    "Account",
    "AccountMode",
    "AccountSettings",
    "AccountStats",
    "Receipt",
    "Transaction",
    "TransactionType",
    "PurchaseRequest",
    "PurchaseStatus",
]
