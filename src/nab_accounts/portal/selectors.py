from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CandidateSet:
    """
    Ordered locators for one logical UI role. Evaluated top-to-bottom; the first visible match wins.
    """

    role: str
    locators: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.locators:
            raise ValueError(f"CandidateSet {self.role!r} needs at least one locator")
        # Accept lists from callers but keep the stored value immutable.
        object.__setattr__(self, "locators", tuple(self.locators))

    def __iter__(self):
        return iter(self.locators)

    def __len__(self) -> int:
        return len(self.locators)


@dataclass(frozen=True)
class PortalSelectors:
    """
    The bank's public site and internet banking login are not an API; selectors may change over time.
    Keep all UI selectors here for easy maintenance. Order matters: more specific locators first,
    broad fallbacks (e.g. bare `button`) last.
    """

    # Header "Login" button that opens the login dropdown.
    login_trigger: CandidateSet = field(
        default_factory=lambda: CandidateSet(
            "login button",
            (
                'button[class*="login"]',
                'a[class*="login"]',
                '[role="button"][class*="login"]',
                'button[title*="Login"]',
                'a[title*="Login"]',
                ".header button",
                ".navigation button",
                "button",
                'a[href*="login"]',
            ),
        )
    )

    # "Internet Banking" entry inside the login dropdown.
    internet_banking_entry: CandidateSet = field(
        default_factory=lambda: CandidateSet(
            "internet banking link",
            (
                'a[href*="internet-banking"]',
                'a[href*="internetbanking"]',
                'a[title*="Internet Banking"]',
                '[role="menuitem"][href*="banking"]',
                '.dropdown a[href*="banking"]',
                '.menu a[href*="banking"]',
                'a[href*="personal/online-banking"]',
            ),
        )
    )

    # Login form
    username_input: CandidateSet = field(
        default_factory=lambda: CandidateSet(
            "username field",
            (
                'input[name="userid"]',
                'input[id="userid"]',
                'input[type="text"][placeholder*="ID"]',
                'input[type="text"][placeholder*="username"]',
            ),
        )
    )
    password_input: CandidateSet = field(
        default_factory=lambda: CandidateSet(
            "password field",
            (
                'input[name="password"]',
                'input[id="password"]',
                'input[type="password"]',
            ),
        )
    )
    submit: CandidateSet = field(
        default_factory=lambda: CandidateSet(
            "submit button",
            (
                'input[type="submit"]',
                'button[type="submit"]',
                'button[class*="submit"]',
                'input[value*="Log"]',
                'button[class*="login"]',
            ),
        )
    )

    # Readiness signals
    page_ready: str = "body"
    # Dropdown containers that signal the login menu has rendered.
    login_menu: str = '.dropdown, .menu, [role="menu"]'
    # Optional element that only renders once balances are on screen. Empty: use the settle interval.
    accounts_ready: str = ""
