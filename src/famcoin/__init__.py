"""FamCoin — a family allowance economy engine.

Members earn virtual coins for real actions; earnings are taxed and split
across sub-accounts (spending, savings, investing, charity); spending
passes through a parent approval workflow; every movement leaves an
immutable transaction, receipt and audit event.
"""

from famcoin.service import AccountRegistry, ServiceResult

__version__ = "0.1.0"

__all__ = ["AccountRegistry", "ServiceResult"]
