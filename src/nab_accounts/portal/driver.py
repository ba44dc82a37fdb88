from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, Sequence

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..config import SessionConfig
from ..errors import AcquisitionTimeout, TransientUnavailable
from .budget import SessionBudget


logger = logging.getLogger(__name__)

_CHROMIUM_ARGS = ["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"]
# Playwright's own default for launch().
LAUNCH_TIMEOUT_MS = 30_000
_LAUNCH_STEP = "launch browser"


class DriverError(RuntimeError):
    """
    A browser operation failed (element detached, navigation error, crashed target, ...).
    """


class DriverTimeout(DriverError):
    """
    A browser operation did not complete within the timeout it was given.
    """


class BrowserDriver:
    """
    The browser capability the account engine is written against.

    All timeouts are milliseconds. Implementations raise `DriverTimeout` / `DriverError` only, so the
    engine never needs to know which automation product is underneath.
    """

    def navigate(self, url: str, *, timeout_ms: int) -> None:
        raise NotImplementedError

    def wait_visible(self, locator: str, *, timeout_ms: int) -> None:
        raise NotImplementedError

    def click(self, locator: str, *, timeout_ms: int) -> None:
        raise NotImplementedError

    def type_text(self, locator: str, value: str, *, timeout_ms: int) -> None:
        raise NotImplementedError

    def outer_html(self, locator: str, *, timeout_ms: int) -> str:
        raise NotImplementedError

    def screenshot(self, *, mask: Sequence[str] = (), timeout_ms: int) -> bytes:
        raise NotImplementedError

    def pause(self, ms: int) -> None:
        raise NotImplementedError

    @property
    def url(self) -> str:
        return ""


SessionFactory = Callable[[SessionConfig, SessionBudget], ContextManager[BrowserDriver]]


class PlaywrightDriver(BrowserDriver):
    def __init__(self, page: Page) -> None:
        self.page = page

    @contextmanager
    def _translate(self, action: str) -> Iterator[None]:
        try:
            yield
        except PlaywrightTimeoutError as e:
            raise DriverTimeout(f"{action}: {e}") from e
        except PlaywrightError as e:
            raise DriverError(f"{action}: {e}") from e

    def navigate(self, url: str, *, timeout_ms: int) -> None:
        with self._translate(f"navigate {url}"):
            self.page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)

    def wait_visible(self, locator: str, *, timeout_ms: int) -> None:
        with self._translate(f"wait_visible {locator}"):
            self.page.locator(locator).first.wait_for(state="visible", timeout=timeout_ms)

    def click(self, locator: str, *, timeout_ms: int) -> None:
        with self._translate(f"click {locator}"):
            self.page.locator(locator).first.click(timeout=timeout_ms)

    def type_text(self, locator: str, value: str, *, timeout_ms: int) -> None:
        # Never put `value` in the action label: it ends up in exception messages and logs.
        with self._translate(f"type_text {locator}"):
            self.page.locator(locator).first.fill(value, timeout=timeout_ms)

    def outer_html(self, locator: str, *, timeout_ms: int) -> str:
        with self._translate(f"outer_html {locator}"):
            return self.page.locator(locator).first.evaluate("el => el.outerHTML", timeout=timeout_ms)

    def screenshot(self, *, mask: Sequence[str] = (), timeout_ms: int) -> bytes:
        with self._translate("screenshot"):
            return self.page.screenshot(
                full_page=False,
                mask=[self.page.locator(m) for m in mask],
                timeout=timeout_ms,
            )

    def pause(self, ms: int) -> None:
        with self._translate("pause"):
            self.page.wait_for_timeout(ms)

    @property
    def url(self) -> str:
        try:
            return self.page.url or ""
        except Exception:
            return ""


def _launch_chromium(p, *, headless: bool, budget: SessionBudget):
    # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
    # cache doesn't have Playwright browsers available. Every attempt gets only what is left of the budget.
    try:
        return p.chromium.launch(
            headless=headless,
            args=_CHROMIUM_ARGS,
            timeout=budget.clamp(LAUNCH_TIMEOUT_MS, step=_LAUNCH_STEP),
        )
    except PlaywrightTimeoutError:
        raise
    except PlaywrightError as e:
        msg = str(e)
        if "Executable doesn't exist" not in msg:
            raise

        logger.warning(
            "Playwright Chromium executable missing; falling back to system browser channel. (%s)",
            msg,
        )

    # Try Chrome first, then Edge.
    try:
        return p.chromium.launch(
            headless=headless,
            args=_CHROMIUM_ARGS,
            channel="chrome",
            timeout=budget.clamp(LAUNCH_TIMEOUT_MS, step=_LAUNCH_STEP),
        )
    except PlaywrightTimeoutError:
        raise
    except PlaywrightError:
        return p.chromium.launch(
            headless=headless,
            args=_CHROMIUM_ARGS,
            channel="msedge",
            timeout=budget.clamp(LAUNCH_TIMEOUT_MS, step=_LAUNCH_STEP),
        )


@contextmanager
def playwright_session(config: SessionConfig, budget: SessionBudget) -> Iterator[BrowserDriver]:
    """
    One isolated browser (process + context + page) for one acquisition. Always torn down on exit.

    Start-up counts against `budget` like every later step.
    """
    with sync_playwright() as p:
        try:
            browser = _launch_chromium(p, headless=config.headless, budget=budget)
        except AcquisitionTimeout:
            raise
        except PlaywrightTimeoutError as e:
            if budget.expired:
                raise budget.timeout_error(_LAUNCH_STEP) from e
            raise TransientUnavailable(f"Browser launch timed out: {e}") from e
        except Exception as e:
            raise TransientUnavailable(f"Could not start browser: {e}") from e
        try:
            try:
                # Closing the browser below also releases a half-built context.
                ctx = browser.new_context(user_agent=config.user_agent, color_scheme="light")
                page = ctx.new_page()
            except PlaywrightError as e:
                raise TransientUnavailable(f"Could not open browser page: {e}") from e
            # Fallback for calls that pass no timeout; engine steps always pass a clamped one.
            default_ms = budget.clamp(config.timeout_ms, step="open page")
            page.set_default_timeout(default_ms)
            page.set_default_navigation_timeout(default_ms)
            try:
                yield PlaywrightDriver(page)
            finally:
                ctx.close()
        finally:
            browser.close()
            logger.debug("Browser session closed.")
