from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup

from ..models import Account, AccountType, Money
from ..util.money import AMOUNT_RE, amount_from_match


# Known NAB product names, matched case-insensitively anywhere in the text.
KNOWN_ACCOUNT_NAMES: tuple[str, ...] = (
    "Complete Access Account",
    "NAB Classic Banking",
    "NAB Reward Saver",
    "Premium Cash Management",
    "Business Banking Account",
)

# First matching row wins; no match means an everyday (checking) account.
ACCOUNT_TYPE_KEYWORDS: tuple[tuple[AccountType, tuple[str, ...]], ...] = (
    (AccountType.SAVINGS, ("saver", "savings")),
    (AccountType.CREDIT, ("credit",)),
    (AccountType.LOAN, ("loan",)),
    (AccountType.INVESTMENT, ("investment",)),
)

DEFAULT_ACCOUNT_NAME = "NAB Account"

_ACCOUNT_ID_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?<!\d)\d{6}-\d{8}(?!\d)"),  # BSB-account: 084001-12345678
    re.compile(r"(?<![\d*•])\d{8}(?!\d)"),
    re.compile(r"(?<![\d*•])\d{10}(?!\d)"),
)
_MASKED_NUMBER_RE = re.compile(r"[*•]{4}\s?(\d{4})(?!\d)")
_BSB_LABELLED_RE = re.compile(r"\bBSB\b[:#\s]*(\d{3})[-\s]?(\d{3})(?!\d)", re.I)
_BSB_RE = re.compile(r"(?<![\d.,$-])(\d{3})-?(\d{3})(?![\d.,])")
_WS_RE = re.compile(r"[ \t\r\f\v\xa0]+")


def flatten_markup(markup: str) -> str:
    """
    Reduce rendered HTML to trimmed, non-empty text lines. Plain text passes through (normalized).
    """
    raw = markup or ""
    if "<" in raw and ">" in raw:
        soup = BeautifulSoup(raw, "html.parser")
        for tag in soup(["script", "style", "noscript", "template"]):
            tag.decompose()
        raw = soup.get_text("\n")

    lines = []
    for line in raw.splitlines():
        s = _WS_RE.sub(" ", line).strip()
        if s:
            lines.append(s)
    return "\n".join(lines)


def find_amounts(text: str) -> list[str]:
    """
    All currency amounts in order, normalized to "1234.56" form.
    """
    return [amount_from_match(m) for m in AMOUNT_RE.finditer(text or "")]


def extract_balance(text: str) -> str:
    m = AMOUNT_RE.search(text or "")
    if not m:
        return ""
    return amount_from_match(m)


def extract_account_number(text: str) -> str:
    m = _MASKED_NUMBER_RE.search(text or "")
    if not m:
        return ""
    return m.group(0).replace(" ", "")


def extract_bsb(text: str) -> str:
    m = _BSB_LABELLED_RE.search(text or "") or _BSB_RE.search(text or "")
    if not m:
        return ""
    return m.group(1) + m.group(2)


def extract_account_id(text: str, fallback: str) -> str:
    for pattern in _ACCOUNT_ID_PATTERNS:
        m = pattern.search(text or "")
        if m:
            return m.group(0)
    return fallback


def classify_account_type(text: str) -> AccountType:
    low = (text or "").lower()
    for account_type, keywords in ACCOUNT_TYPE_KEYWORDS:
        if any(k in low for k in keywords):
            return account_type
    return AccountType.CHECKING


def extract_account_name(text: str, default: str = DEFAULT_ACCOUNT_NAME) -> str:
    low = (text or "").lower()
    for name in KNOWN_ACCOUNT_NAMES:
        if name.lower() in low:
            return name

    # Generic extraction: a short line that mentions "account".
    for line in (text or "").splitlines():
        s = line.strip()
        if 5 < len(s) < 50 and "account" in s.lower():
            return s

    return default


def _optional(value: str) -> Optional[str]:
    return value or None


def extract_accounts(markup: str) -> list[Account]:
    """
    Turn a rendered accounts page into Account records.

    Every currency amount on the page is treated as one account anchor. The text between the
    previous anchor and this one (inclusive) is that account's context for name/type/number/BSB;
    the account id is only looked for before the amount.
    This is deliberately approximate: a balance shown twice for the same account (e.g. "current"
    and "available") yields two records. An empty list is a valid result.
    """
    text = flatten_markup(markup)

    accounts: list[Account] = []
    seen_ids: set[str] = set()
    prev_end = 0
    for n, m in enumerate(AMOUNT_RE.finditer(text), start=1):
        context = text[prev_end:m.end()]
        # The id must not come from the anchor amount itself (e.g. "$12345678.90").
        leading = text[prev_end:m.start()]
        prev_end = m.end()

        positional = f"account_{n}"
        account_id = extract_account_id(leading, fallback=positional)
        if account_id in seen_ids:
            account_id = positional
        seen_ids.add(account_id)

        balance = amount_from_match(m)
        accounts.append(
            Account(
                id=account_id,
                name=extract_account_name(context, default=f"{DEFAULT_ACCOUNT_NAME} {n}"),
                type=classify_account_type(context),
                balance=Money(amount=balance),
                available_balance=Money(amount=balance),
                account_number=_optional(extract_account_number(context)),
                bsb=_optional(extract_bsb(context)),
            )
        )
    return accounts
