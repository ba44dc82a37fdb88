from __future__ import annotations

from fakes import ACCOUNTS_PAGE
from nab_accounts.models import AccountType
from nab_accounts.portal.extract import (
    classify_account_type,
    extract_account_id,
    extract_account_name,
    extract_account_number,
    extract_accounts,
    extract_balance,
    extract_bsb,
    find_amounts,
    flatten_markup,
)


def test_flatten_markup_drops_scripts_and_blank_lines() -> None:
    text = flatten_markup("<div><p> Hello   world </p>\n\n<script>var a = 1;</script><span>Bye</span></div>")
    assert text.splitlines() == ["Hello world", "Bye"]


def test_flatten_markup_passes_plain_text_through() -> None:
    assert flatten_markup("  line one \n\n line two") == "line one\nline two"


def test_extract_balance_strips_symbol_and_separators() -> None:
    assert extract_balance("Balance $15,420.89 available") == "15420.89"
    assert extract_balance("no money here") == ""


def test_find_amounts_handles_negative_and_ignores_non_money_numbers() -> None:
    text = "Opened 17/10/2023, BSB 084-001, balance -$85.67, limit $1,000.00, rate 4.125%"
    assert find_amounts(text) == ["-85.67", "1000.00"]


def test_amount_extraction_is_idempotent_on_its_own_output() -> None:
    first = find_amounts("Current $2,543.67 Available $2,543.67 Owing -$1,200.50 Other 847.23")
    again = find_amounts(" ".join(first))
    assert again == first == ["2543.67", "2543.67", "-1200.50", "847.23"]


def test_masked_account_number_keeps_mask() -> None:
    assert extract_account_number("Acc ****1234 BSB 084-001") == "****1234"
    assert extract_account_number("Acc **** 5678") == "****5678"
    assert extract_account_number("Acc 12345678") == ""


def test_bsb_prefers_labelled_value() -> None:
    assert extract_bsb("Ref 123456 BSB 084 001") == "084001"
    assert extract_bsb("084-001 12345678") == "084001"
    assert extract_bsb("nothing") == ""


def test_account_id_patterns() -> None:
    assert extract_account_id("Acct 084001-12345678", fallback="x") == "084001-12345678"
    assert extract_account_id("Acct 12345678 $1.00", fallback="x") == "12345678"
    assert extract_account_id("Acct ****5678", fallback="account_1") == "account_1"


def test_account_type_classification() -> None:
    assert classify_account_type("NAB Reward Saver") is AccountType.SAVINGS
    assert classify_account_type("my reward saver account") is AccountType.SAVINGS
    assert classify_account_type("Qantas Rewards credit card") is AccountType.CREDIT
    assert classify_account_type("Home Loan") is AccountType.LOAN
    assert classify_account_type("NAB Trade investment") is AccountType.INVESTMENT
    assert classify_account_type("NAB Classic Banking") is AccountType.CHECKING


def test_account_type_table_order_savings_beats_credit() -> None:
    assert classify_account_type("Savings account with credit interest") is AccountType.SAVINGS


def test_account_name_catalogue_then_line_then_placeholder() -> None:
    assert extract_account_name("foo\nnab reward saver\n$1.00") == "NAB Reward Saver"
    assert extract_account_name("Header\nMy Everyday Account\n$1.00") == "My Everyday Account"
    assert extract_account_name("$1.00") == "NAB Account"
    assert extract_account_name("$1.00", default="NAB Account 3") == "NAB Account 3"


def test_extract_accounts_from_rendered_page() -> None:
    accounts = extract_accounts(ACCOUNTS_PAGE)

    assert [a.id for a in accounts] == ["account_1", "account_2", "account_3"]
    saver, classic, card = accounts

    assert saver.name == "NAB Reward Saver"
    assert saver.type is AccountType.SAVINGS
    assert saver.balance.amount == "15420.89"
    assert saver.available_balance is not None and saver.available_balance.amount == "15420.89"
    assert saver.account_number == "****3344"
    assert saver.bsb == "084001"

    assert classic.name == "NAB Classic Banking"
    assert classic.type is AccountType.CHECKING
    assert classic.account_number == "****4321"
    assert classic.bsb is None

    assert card.type is AccountType.CREDIT
    assert card.balance.amount == "-1200.50"
    assert card.name == "NAB Account 3"


def test_extract_accounts_prefers_recovered_id_and_keeps_ids_unique() -> None:
    text = "Everyday 12345678\n$100.00\nSavings 12345678\n$5.00\nLoan 87654321\n-$9.99"
    accounts = extract_accounts(text)
    assert [a.id for a in accounts] == ["12345678", "account_2", "87654321"]


def test_extract_accounts_never_takes_id_from_the_balance_digits() -> None:
    text = "Premium Cash Management\n$12345678.90\nComplete Access Account\n$12.00"
    accounts = extract_accounts(text)

    assert [a.id for a in accounts] == ["account_1", "account_2"]
    assert accounts[0].balance.amount == "12345678.90"
    assert accounts[0].name == "Premium Cash Management"


def test_extract_accounts_empty_page_is_empty_list() -> None:
    assert extract_accounts("<html><body><p>You have no accounts</p></body></html>") == []
    assert extract_accounts("") == []
