from .bank_client import BankClient
from .transaction_source_api import TransactionSourceAPI

__all__ = ["BankClient", "TransactionSourceAPI"]
