from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .budget import SessionBudget
from .driver import BrowserDriver, DriverError, DriverTimeout
from .selectors import CandidateSet


logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_MS = 5_000


class SelectorNotFoundError(LookupError):
    """
    Raised when no locator in a candidate set became visible.
    """

    def __init__(self, role: str, tried: tuple[str, ...]) -> None:
        super().__init__(f"Could not find {role} (tried {len(tried)} selectors)")
        self.role = role
        self.tried = tried


@dataclass(frozen=True)
class Resolution:
    role: str
    locator: str
    index: int


class SelectorResolver:
    """
    Resolve a logical UI role to one concrete locator.

    Candidates are probed in the order given and the first one that becomes visible wins, even if a
    later candidate would be a "better" match. Probing is read-only.
    """

    def __init__(
        self,
        driver: BrowserDriver,
        budget: SessionBudget,
        *,
        probe_timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    ) -> None:
        self.driver = driver
        self.budget = budget
        self.probe_timeout_ms = int(probe_timeout_ms)

    def resolve(self, candidates: CandidateSet, *, timeout_ms: Optional[int] = None) -> Resolution:
        per_probe = self.probe_timeout_ms if timeout_ms is None else int(timeout_ms)
        for idx, locator in enumerate(candidates.locators):
            probe_ms = self.budget.clamp(per_probe, step=f"resolve {candidates.role}")
            try:
                self.driver.wait_visible(locator, timeout_ms=probe_ms)
            except DriverTimeout as e:
                if self.budget.expired:
                    raise self.budget.timeout_error(f"resolve {candidates.role}") from e
                logger.debug("Selector failed for %s: %s", candidates.role, locator)
                continue
            except DriverError:
                # e.g. an invalid selector for this engine; treat as "not this one".
                logger.debug("Selector errored for %s: %s", candidates.role, locator, exc_info=True)
                continue

            logger.info("Found %s with selector: %s", candidates.role, locator)
            return Resolution(role=candidates.role, locator=locator, index=idx)

        raise SelectorNotFoundError(candidates.role, candidates.locators)
