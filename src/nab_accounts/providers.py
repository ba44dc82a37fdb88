from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from .config import AppConfig, SessionConfig
from .errors import AccountNotFound
from .models import Account, AccountDetails, AccountType, Money, Transaction
from .portal.session import AccountAcquisitionEngine


logger = logging.getLogger(__name__)


class AccountProvider:
    """
    Where accounts come from. Subclasses supply `get_accounts` / `get_account_transactions`; the
    listing and lookup rules below are shared so every source behaves the same for callers.
    """

    name: str = ""

    def get_accounts(self) -> list[Account]:
        raise NotImplementedError

    def get_account_transactions(self, account_id: str) -> list[Transaction]:
        raise NotImplementedError

    def list_accounts(self) -> list[Account]:
        now = datetime.now(timezone.utc)
        return [a.model_copy(update={"last_updated": now}) for a in self.get_accounts()]

    def fetch_account_with_transactions(self, account_id: str) -> tuple[Account, list[Transaction]]:
        # Always list fresh so the lookup reflects the portal right now.
        target = next((a for a in self.get_accounts() if a.id == account_id), None)
        if target is None:
            raise AccountNotFound(account_id)

        transactions = self.get_account_transactions(account_id)
        target = target.model_copy(update={"last_updated": datetime.now(timezone.utc)})
        return target, transactions

    def get_account_details(self, account_id: str) -> AccountDetails:
        account, transactions = self.fetch_account_with_transactions(account_id)
        return AccountDetails(
            **account.model_dump(),
            transactions=transactions,
            recent_transaction_count=len(transactions),
        )


class PortalAccountProvider(AccountProvider):
    name = "portal"

    def __init__(self, config: SessionConfig, *, engine: Optional[AccountAcquisitionEngine] = None) -> None:
        self.engine = engine or AccountAcquisitionEngine(config)

    def get_accounts(self) -> list[Account]:
        return self.engine.acquire_accounts()

    def get_account_transactions(self, account_id: str) -> list[Transaction]:
        return self.engine.fetch_transactions(account_id)


def _sample_account(
    account_id: str,
    name: str,
    account_type: AccountType,
    amount: str,
) -> Account:
    return Account(
        id=account_id,
        name=name,
        type=account_type,
        balance=Money(amount=amount),
        available_balance=Money(amount=amount),
        account_number=f"****{account_id[-4:]}",
        bsb="084001",
    )


class SampleAccountProvider(AccountProvider):
    """
    Fixed sample data with the same contract as the portal provider (no browser, no credentials).
    """

    name = "sample"

    def __init__(self, *, today: Callable[[], date] = date.today) -> None:
        self._today = today

    def get_accounts(self) -> list[Account]:
        return [
            _sample_account("12345678", "Complete Access Account", AccountType.SAVINGS, "2543.67"),
            _sample_account("87654321", "NAB Classic Banking Account", AccountType.CHECKING, "847.23"),
            _sample_account("11223344", "NAB Reward Saver", AccountType.SAVINGS, "15420.89"),
        ]

    def get_account_transactions(self, account_id: str) -> list[Transaction]:
        today = self._today()
        # Newest first, as they appear on the portal.
        rows = [
            ("EFTPOS Purchase - COLES SUPERMARKET", "-85.67", "2543.67", "Groceries", "COLES SUPERMARKET"),
            ("Direct Credit - SALARY PAYMENT", "2500.00", "2629.34", "Income", "EMPLOYER PTY LTD"),
            ("ATM Withdrawal - NAB ATM", "-100.00", "129.34", "Cash", "NAB ATM"),
        ]
        out: list[Transaction] = []
        for i, (description, amount, balance, category, merchant) in enumerate(rows, start=1):
            out.append(
                Transaction(
                    id=f"txn_{i:03d}_{account_id}",
                    date=today - timedelta(days=i),
                    description=description,
                    amount=Money(amount=amount),
                    balance=Money(amount=balance),
                    category=category,
                    merchant=merchant,
                )
            )
        return out


def build_provider(cfg: AppConfig, **session_overrides: object) -> AccountProvider:
    if cfg.provider == "sample":
        logger.info("Using sample account provider (no browser).")
        return SampleAccountProvider()
    logger.info("Using NAB portal account provider.")
    return PortalAccountProvider(cfg.session_config(**session_overrides))
