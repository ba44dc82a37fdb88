from __future__ import annotations

from datetime import date as _date
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .util.dates import parse_au_date
from .util.money import is_normalized_amount


class AccountType(str, Enum):
    SAVINGS = "savings"
    CHECKING = "checking"
    CREDIT = "credit"
    LOAN = "loan"
    INVESTMENT = "investment"


class _ApiModel(BaseModel):
    # JSON output keeps the camelCase field names the account API has always exposed.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Money(_ApiModel):
    amount: str

    @field_validator("amount")
    @classmethod
    def _two_fraction_digits(cls, v: str) -> str:
        if not is_normalized_amount(v):
            raise ValueError(f"amount must look like '1234.56' (got {v!r})")
        return v


class Account(_ApiModel):
    id: str
    name: str
    type: AccountType
    balance: Money
    available_balance: Optional[Money] = None
    account_number: Optional[str] = None
    bsb: Optional[str] = None
    last_updated: Optional[datetime] = None


class Transaction(_ApiModel):
    id: str
    date: _date
    description: str
    amount: Money
    balance: Money
    category: Optional[str] = None
    merchant: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_portal_date(cls, v: object) -> object:
        # Scraped rows show dd/mm/yyyy; keep those working alongside ISO strings and date objects.
        if isinstance(v, str):
            return parse_au_date(v)
        return v


class AccountDetails(Account):
    transactions: list[Transaction] = Field(default_factory=list)
    recent_transaction_count: int = 0


class AccountsResponse(_ApiModel):
    accounts: list[Account]
    retrieved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    count: int = 0


class AccountDetailsResponse(_ApiModel):
    account: AccountDetails


class ErrorResponse(_ApiModel):
    error: str
    message: str
    details: Optional[Any] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
