"""
Base adapter interface for the account aggregator.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime
from pydantic import BaseModel, Field


class TransactionData(BaseModel):
    """Canonical transaction data model. Only the immutable facts."""
    external_id: str
    posted_date: date
    amount: Decimal
    description: str = ""
    memo: Optional[str] = None
    pending: bool = False


class AccountData(BaseModel):
    """Canonical account data model. Carries only the fields sync may write."""
    external_id: str
    name: str
    institution: Optional[str] = None
    currency: str = "USD"
    balance: Decimal = Decimal("0")
    balance_date: datetime


class AccountSet(BaseModel):
    """One accounts listing as returned by the aggregator, not yet normalized."""
    accounts: List[dict] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class BankAdapter(ABC):
    """Abstract base class for aggregator adapters."""

    @abstractmethod
    def fetch_accounts(
        self,
        start_date: Optional[datetime] = None,
        account_id: Optional[str] = None,
    ) -> AccountSet:
        """Fetch accounts (and, when start_date is given, their transactions)."""
        pass

    @abstractmethod
    def normalize_account(self, raw: dict) -> AccountData:
        """Convert provider-specific account format to canonical format."""
        pass

    @abstractmethod
    def normalize_transaction(self, raw: dict) -> TransactionData:
        """Convert provider-specific transaction format to canonical format."""
        pass
