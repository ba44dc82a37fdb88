from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from ..config import SessionConfig
from ..errors import AcquisitionError, AuthenticationFailed, TransientUnavailable
from ..models import Account, Transaction
from .auth import AuthenticationSequencer
from .budget import SessionBudget
from .diagnostics import DiagnosticsCollector
from .driver import BrowserDriver, DriverError, DriverTimeout, SessionFactory, playwright_session
from .extract import extract_accounts
from .resolver import DEFAULT_PROBE_TIMEOUT_MS, SelectorResolver
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)

DEFAULT_SETTLE_MS = 3_000
# Snapshot allowance once the session budget is already spent.
EXPIRED_SNAPSHOT_MS = 1_000


def classify_failure(exc: BaseException, budget: SessionBudget) -> AcquisitionError:
    """
    Map anything raised inside an acquisition onto exactly one AcquisitionError kind.
    """
    if isinstance(exc, AcquisitionError):
        return exc
    if isinstance(exc, DriverTimeout):
        if budget.expired:
            return budget.timeout_error("browser operation")
        # A single step ran out of its own timeout while the session still had time left.
        return TransientUnavailable(f"Browser operation timed out: {exc}")
    if isinstance(exc, DriverError):
        return TransientUnavailable(f"Browser automation failed: {exc}")
    logger.error("Unexpected error during account retrieval: %s", exc.__class__.__name__)
    return TransientUnavailable(f"Unexpected browser automation failure: {exc.__class__.__name__}")


def _reason_tag(err: AcquisitionError) -> str:
    if isinstance(err, AuthenticationFailed) and err.role:
        return f"{err.role}_not_found"
    return err.code.lower()


class AccountAcquisitionEngine:
    """
    Log into NAB internet banking in a fresh headless browser and scrape the accounts page.

    One call = one browser session = one session budget. Every failure is classified into an
    `AcquisitionError`, gets exactly one diagnostics snapshot, and the browser is always torn down.
    """

    def __init__(
        self,
        config: SessionConfig,
        *,
        session_factory: SessionFactory = playwright_session,
        selectors: Optional[PortalSelectors] = None,
        diagnostics: Optional[DiagnosticsCollector] = None,
        settle_ms: int = DEFAULT_SETTLE_MS,
        probe_timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
        action_timeout_ms: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.session_factory = session_factory
        self.selectors = selectors or PortalSelectors()
        self.diagnostics = diagnostics or DiagnosticsCollector(config.screenshot_path)
        self.settle_ms = int(settle_ms)
        self.probe_timeout_ms = int(probe_timeout_ms)
        self.action_timeout_ms = int(action_timeout_ms)
        self._clock = clock

    def acquire_accounts(self) -> list[Account]:
        logger.info("Starting NAB account scraping...")
        budget = SessionBudget(self.config.timeout_seconds, clock=self._clock)
        captured = False
        try:
            with self.session_factory(self.config, budget) as driver:
                sequencer = AuthenticationSequencer(
                    driver,
                    budget,
                    self.config,
                    selectors=self.selectors,
                    resolver=SelectorResolver(driver, budget, probe_timeout_ms=self.probe_timeout_ms),
                    action_timeout_ms=self.action_timeout_ms,
                )
                try:
                    accounts = self._acquire(driver, budget, sequencer)
                except Exception as e:
                    err = classify_failure(e, budget)
                    logger.warning("Account retrieval failed (%s) on %s", err.code, driver.url or "about:blank")
                    captured = True
                    self._capture(driver, err, budget, mask=sequencer.credential_locators)
                    if err is e:
                        raise
                    raise err from e
        except Exception as e:
            # Session start-up (or teardown) failures: there may be no page to snapshot.
            err = classify_failure(e, budget)
            if not captured:
                self._capture(None, err, budget)
            if err is e:
                raise
            raise err from e

        logger.info("Successfully scraped %d accounts", len(accounts))
        return accounts

    def fetch_transactions(self, account_id: str) -> list[Transaction]:
        # Needs a second navigation sequence (account -> transaction history) that does not exist yet.
        logger.info("Transaction scraping is not implemented; returning no transactions for %s.", account_id)
        return []

    def _acquire(
        self,
        driver: BrowserDriver,
        budget: SessionBudget,
        sequencer: AuthenticationSequencer,
    ) -> list[Account]:
        outcome = sequencer.run()
        if not outcome.ok:
            raise AuthenticationFailed(f"Login failed: {outcome.reason}", role=outcome.role)

        self._wait_for_settle(driver, budget)

        logger.info("Extracting accounts from page source...")
        markup = driver.outer_html("html", timeout_ms=budget.clamp(self.action_timeout_ms, step="read page"))
        return extract_accounts(markup)

    def _wait_for_settle(self, driver: BrowserDriver, budget: SessionBudget) -> None:
        """
        Post-login pages render asynchronously. Wait for a readiness signal when one is configured,
        otherwise fall back to a bounded settle interval.
        """
        step = "post-login settle"
        try:
            driver.wait_visible(self.selectors.page_ready, timeout_ms=budget.clamp(self.action_timeout_ms, step=step))
            if self.selectors.accounts_ready:
                driver.wait_visible(
                    self.selectors.accounts_ready,
                    timeout_ms=budget.clamp(self.action_timeout_ms, step=step),
                )
            else:
                driver.pause(budget.clamp(self.settle_ms, step=step))
        except DriverTimeout as e:
            if budget.expired:
                raise budget.timeout_error(step) from e
            # Extraction copes with partial pages; an empty result is still a valid answer.
            logger.warning("Post-login page did not signal readiness; extracting anyway.")

    def _capture(
        self,
        driver: Optional[BrowserDriver],
        err: AcquisitionError,
        budget: SessionBudget,
        *,
        mask: Sequence[str] = (),
    ) -> None:
        if not err.wants_diagnostics:
            return
        timeout_ms = min(self.diagnostics.timeout_ms, max(budget.remaining_ms(), EXPIRED_SNAPSHOT_MS))
        self.diagnostics.capture(driver, _reason_tag(err), mask=mask, timeout_ms=timeout_ms)
