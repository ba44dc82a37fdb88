from __future__ import annotations

from typing import Optional


class AcquisitionError(RuntimeError):
    """
    Base for every failure the account engine reports.

    Callers only ever see one of the subclasses below; raw Playwright/driver errors are classified
    before they leave the engine (the underlying error is kept as `__cause__`).
    """

    code: str = "INTERNAL_ERROR"
    # Authentication and infrastructure problems surface as "service unavailable" to API consumers.
    service_unavailable: bool = False
    # Whether a diagnostics snapshot should be attempted for this kind.
    wants_diagnostics: bool = True


class AuthenticationFailed(AcquisitionError):
    code = "AUTHENTICATION_FAILED"
    service_unavailable = True

    def __init__(self, message: str, *, role: Optional[str] = None) -> None:
        super().__init__(message)
        self.role = role


class AcquisitionTimeout(AcquisitionError):
    code = "TIMEOUT"
    service_unavailable = True

    def __init__(self, message: str, *, step: str = "") -> None:
        super().__init__(message)
        self.step = step


class TransientUnavailable(AcquisitionError):
    code = "SERVICE_UNAVAILABLE"
    service_unavailable = True


class AccountNotFound(AcquisitionError):
    code = "ACCOUNT_NOT_FOUND"
    # Raised after the session is gone; there is nothing left to snapshot.
    wants_diagnostics = False

    def __init__(self, account_id: str) -> None:
        super().__init__(f"Account not found: {account_id}")
        self.account_id = account_id
