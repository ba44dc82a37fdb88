from __future__ import annotations

from datetime import date

import pytest

from nab_accounts.config import AppConfig
from nab_accounts.errors import AccountNotFound, AuthenticationFailed
from nab_accounts.models import Account, AccountType, Money
from nab_accounts.providers import PortalAccountProvider, SampleAccountProvider, build_provider

from fakes import session_config


def _fixed_today() -> date:
    return date(2023, 10, 17)


def test_sample_accounts() -> None:
    accounts = SampleAccountProvider().list_accounts()

    assert [a.id for a in accounts] == ["12345678", "87654321", "11223344"]
    assert [a.balance.amount for a in accounts] == ["2543.67", "847.23", "15420.89"]
    assert [a.type for a in accounts] == [AccountType.SAVINGS, AccountType.CHECKING, AccountType.SAVINGS]
    assert all(a.bsb == "084001" for a in accounts)
    assert accounts[1].account_number == "****4321"
    assert all(a.last_updated is not None for a in accounts)


def test_sample_account_details_include_transactions() -> None:
    details = SampleAccountProvider(today=_fixed_today).get_account_details("87654321")

    assert details.name == "NAB Classic Banking Account"
    assert details.recent_transaction_count == 3
    assert [t.id for t in details.transactions] == [
        "txn_001_87654321",
        "txn_002_87654321",
        "txn_003_87654321",
    ]
    assert [t.date for t in details.transactions] == [date(2023, 10, 16), date(2023, 10, 15), date(2023, 10, 14)]
    assert details.transactions[0].amount.amount == "-85.67"


def test_unknown_account_is_not_found() -> None:
    with pytest.raises(AccountNotFound) as exc:
        SampleAccountProvider().get_account_details("doesnotexist")
    assert exc.value.account_id == "doesnotexist"


class _StubEngine:
    def __init__(self, accounts: list[Account], error: Exception | None = None) -> None:
        self.accounts = accounts
        self.error = error
        self.calls = 0

    def acquire_accounts(self) -> list[Account]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.accounts

    def fetch_transactions(self, account_id: str) -> list:
        return []


def _account(account_id: str) -> Account:
    return Account(id=account_id, name="NAB Reward Saver", type=AccountType.SAVINGS, balance=Money(amount="1.00"))


def test_portal_provider_lists_fresh_on_every_lookup() -> None:
    engine = _StubEngine([_account("12345678")])
    provider = PortalAccountProvider(session_config(), engine=engine)  # type: ignore[arg-type]

    details = provider.get_account_details("12345678")
    assert details.transactions == []
    assert details.recent_transaction_count == 0

    with pytest.raises(AccountNotFound):
        provider.get_account_details("87654321")
    assert engine.calls == 2


def test_portal_provider_propagates_engine_errors() -> None:
    engine = _StubEngine([], error=AuthenticationFailed("Login failed", role="submit button"))
    provider = PortalAccountProvider(session_config(), engine=engine)  # type: ignore[arg-type]

    with pytest.raises(AuthenticationFailed):
        provider.list_accounts()


def test_build_provider_selects_by_config() -> None:
    sample = build_provider(AppConfig(provider="sample"))
    assert isinstance(sample, SampleAccountProvider)

    portal_cfg = AppConfig.model_validate(
        {"provider": "portal", "portal": {"username": "jane.citizen", "password": "s3cret-Passw0rd"}}
    )
    portal = build_provider(portal_cfg, timeout_seconds=45.0, headless=False)
    assert isinstance(portal, PortalAccountProvider)
    assert portal.engine.config.timeout_seconds == 45.0
    assert portal.engine.config.headless is False
