from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..config import SessionConfig
from ..errors import TransientUnavailable
from .budget import SessionBudget
from .driver import BrowserDriver, DriverError, DriverTimeout
from .resolver import Resolution, SelectorNotFoundError, SelectorResolver
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    START = "start"
    SITE_LOADED = "site_loaded"
    LOGIN_SURFACE_OPEN = "login_surface_open"
    PORTAL_ENTRY_SELECTED = "portal_entry_selected"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    FAILED = "failed"


@dataclass
class AuthOutcome:
    state: AuthState
    reason: str = ""
    role: Optional[str] = None
    history: list[AuthState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is AuthState.CREDENTIALS_SUBMITTED


class _StepFailed(Exception):
    def __init__(self, role: str, reason: str) -> None:
        super().__init__(reason)
        self.role = role
        self.reason = reason


class AuthenticationSequencer:
    """
    Drive the public site into internet banking and submit the login form:

        start -> site loaded -> login dropdown open -> internet banking selected -> credentials submitted

    Any role that cannot be resolved (or activated) ends in FAILED carrying that role. Nothing is
    retried. Budget exhaustion and infrastructure failures (DNS, crashed browser) are raised instead,
    because they are not authentication problems.
    """

    def __init__(
        self,
        driver: BrowserDriver,
        budget: SessionBudget,
        config: SessionConfig,
        *,
        selectors: Optional[PortalSelectors] = None,
        resolver: Optional[SelectorResolver] = None,
        menu_wait_ms: int = 1_000,
        action_timeout_ms: int = 10_000,
    ) -> None:
        self.driver = driver
        self.budget = budget
        self.config = config
        self.selectors = selectors or PortalSelectors()
        self.resolver = resolver or SelectorResolver(driver, budget)
        self.menu_wait_ms = int(menu_wait_ms)
        self.action_timeout_ms = int(action_timeout_ms)

        self.state = AuthState.START
        self.history: list[AuthState] = [AuthState.START]
        # Locators that received credentials; diagnostics masks these.
        self.credential_locators: list[str] = []

    def run(self) -> AuthOutcome:
        try:
            self._load_site()
            self._open_login_surface()
            self._select_portal_entry()
            self._submit_credentials()
        except SelectorNotFoundError as e:
            return self._fail(str(e), role=e.role)
        except _StepFailed as e:
            return self._fail(e.reason, role=e.role)
        return AuthOutcome(state=self.state, history=list(self.history))

    # --- transitions ---

    def _load_site(self) -> None:
        logger.info("Opening %s", self.config.base_url)
        step = "navigate"
        try:
            self.driver.navigate(
                self.config.base_url,
                timeout_ms=self.budget.clamp(self.config.timeout_ms, step=step),
            )
            self.driver.wait_visible(
                self.selectors.page_ready,
                timeout_ms=self.budget.clamp(self.config.timeout_ms, step=step),
            )
        except DriverTimeout as e:
            if self.budget.expired:
                raise self.budget.timeout_error(step) from e
            raise TransientUnavailable(f"Site did not load: {self.config.base_url}") from e
        except DriverError as e:
            raise TransientUnavailable(f"Could not open {self.config.base_url}: {e}") from e
        self._advance(AuthState.SITE_LOADED)

    def _open_login_surface(self) -> None:
        logger.info("Clicking login button...")
        res = self.resolver.resolve(self.selectors.login_trigger)
        self._activate(res)
        self._advance(AuthState.LOGIN_SURFACE_OPEN)

    def _select_portal_entry(self) -> None:
        logger.info("Selecting Internet Banking from dropdown...")
        self._wait_for_menu()
        res = self.resolver.resolve(self.selectors.internet_banking_entry)
        self._activate(res)
        self._advance(AuthState.PORTAL_ENTRY_SELECTED)

    def _submit_credentials(self) -> None:
        user = self.resolver.resolve(self.selectors.username_input)
        pwd = self.resolver.resolve(self.selectors.password_input)
        submit = self.resolver.resolve(self.selectors.submit)

        logger.info("Submitting login form...")
        self._type(user, self.config.username)
        self._type(pwd, self.config.password)
        self._activate(submit)
        self._advance(AuthState.CREDENTIALS_SUBMITTED)

    # --- helpers ---

    def _wait_for_menu(self) -> None:
        """
        Wait for the login dropdown to render. The menu container is the stable signal; if the
        selector itself errors we fall back to a bounded pause.
        """
        step = "login menu"
        try:
            self.driver.wait_visible(
                self.selectors.login_menu,
                timeout_ms=self.budget.clamp(self.menu_wait_ms, step=step),
            )
        except DriverTimeout as e:
            if self.budget.expired:
                raise self.budget.timeout_error(step) from e
            logger.debug("Login menu container not seen; continuing with entry-point lookup.")
        except DriverError:
            self.driver.pause(self.budget.clamp(self.menu_wait_ms, step=step))

    def _activate(self, res: Resolution) -> None:
        step = f"click {res.role}"
        try:
            self.driver.click(res.locator, timeout_ms=self.budget.clamp(self.action_timeout_ms, step=step))
        except DriverTimeout as e:
            if self.budget.expired:
                raise self.budget.timeout_error(step) from e
            raise _StepFailed(res.role, f"Could not activate {res.role}") from e
        except DriverError as e:
            raise _StepFailed(res.role, f"Could not activate {res.role}") from e

    def _type(self, res: Resolution, value: str) -> None:
        step = f"fill {res.role}"
        self.credential_locators.append(res.locator)
        try:
            self.driver.type_text(
                res.locator,
                value,
                timeout_ms=self.budget.clamp(self.action_timeout_ms, step=step),
            )
        except DriverTimeout as e:
            if self.budget.expired:
                raise self.budget.timeout_error(step) from e
            raise _StepFailed(res.role, f"Could not fill {res.role}") from e
        except DriverError as e:
            raise _StepFailed(res.role, f"Could not fill {res.role}") from e

    def _advance(self, state: AuthState) -> None:
        logger.debug("Auth state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _fail(self, reason: str, *, role: Optional[str]) -> AuthOutcome:
        logger.warning("Login failed at %s: %s", self.state.value, reason)
        failed_from = self.state
        self.state = AuthState.FAILED
        self.history.append(AuthState.FAILED)
        return AuthOutcome(
            state=AuthState.FAILED,
            reason=f"{reason} (after {failed_from.value})",
            role=role,
            history=list(self.history),
        )
