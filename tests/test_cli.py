from __future__ import annotations

import json
from pathlib import Path

import pytest

from nab_accounts import cli
from nab_accounts.errors import AcquisitionTimeout, AuthenticationFailed
from nab_accounts.providers import SampleAccountProvider

from fakes import ACCOUNTS_PAGE


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch) -> None:
    # configure_logging(force=True) would replace pytest's own log capture handlers.
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    for key in ("NAB_PROVIDER", "NAB_USERNAME", "NAB_PASSWORD", "LOG_FILE", "BROWSER_TIMEOUT"):
        monkeypatch.delenv(key, raising=False)


def _run(tmp_path: Path, *argv: str) -> int:
    return cli.main(["--env-file", str(tmp_path / "none.env"), "--config", str(tmp_path / "none.yaml"), *argv])


def test_list_accounts_sample(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "list-accounts", "--sample") == cli.EXIT_OK

    payload = json.loads(capsys.readouterr().out)
    assert payload["count"] == 3
    assert [a["id"] for a in payload["accounts"]] == ["12345678", "87654321", "11223344"]
    assert payload["accounts"][0]["availableBalance"] == {"amount": "2543.67"}
    assert "retrievedAt" in payload


def test_get_account_sample(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "get-account", "87654321", "--sample") == cli.EXIT_OK

    account = json.loads(capsys.readouterr().out)["account"]
    assert account["id"] == "87654321"
    assert account["recentTransactionCount"] == 3
    assert account["transactions"][0]["id"] == "txn_001_87654321"


def test_get_account_not_found(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "get-account", "doesnotexist", "--sample") == cli.EXIT_NOT_FOUND

    payload = json.loads(capsys.readouterr().out)
    assert payload["error"] == "ACCOUNT_NOT_FOUND"
    assert payload["message"] == "Account not found"


class _FailingProvider(SampleAccountProvider):
    def __init__(self, error: BaseException) -> None:
        super().__init__()
        self.error = error

    def get_accounts(self):
        raise self.error


@pytest.mark.parametrize(
    "error, code",
    [
        (AuthenticationFailed("Login failed: Could not find login button", role="login button"), "AUTHENTICATION_FAILED"),
        (AcquisitionTimeout("Session budget of 30s exhausted", step="navigate"), "TIMEOUT"),
    ],
)
def test_portal_failures_map_to_service_unavailable(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
    error: Exception,
    code: str,
) -> None:
    monkeypatch.setenv("NAB_USERNAME", "jane.citizen")
    monkeypatch.setenv("NAB_PASSWORD", "s3cret-Passw0rd")
    monkeypatch.setattr(cli, "build_provider", lambda cfg, **kw: _FailingProvider(error))

    assert _run(tmp_path, "list-accounts") == cli.EXIT_UNAVAILABLE

    captured = capsys.readouterr()
    payload = json.loads(captured.out)
    assert payload["error"] == code
    assert payload["message"] == "Service temporarily unavailable"
    assert "s3cret-Passw0rd" not in captured.out + captured.err


def test_timeout_flag_reaches_session(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NAB_USERNAME", "jane.citizen")
    monkeypatch.setenv("NAB_PASSWORD", "s3cret-Passw0rd")
    seen: dict = {}

    def _build(cfg, **overrides):
        seen.update(overrides)
        return SampleAccountProvider()

    monkeypatch.setattr(cli, "build_provider", _build)

    assert _run(tmp_path, "list-accounts", "--timeout", "2m", "--headful") == cli.EXIT_OK
    assert seen == {"timeout_seconds": 120.0, "headless": False}


def test_interrupt_exits_130(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "build_provider", lambda cfg, **kw: _FailingProvider(KeyboardInterrupt()))
    assert _run(tmp_path, "list-accounts", "--sample") == 130


def test_parse_snapshot(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    page = tmp_path / "accounts.html"
    page.write_text(ACCOUNTS_PAGE, encoding="utf-8")

    assert _run(tmp_path, "parse-snapshot", "--file", str(page)) == cli.EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert payload["count"] == 3
    assert payload["accounts"][0]["name"] == "NAB Reward Saver"

    out = tmp_path / "accounts.json"
    assert _run(tmp_path, "parse-snapshot", "--file", str(page), "--out", str(out)) == cli.EXIT_OK
    assert json.loads(out.read_text(encoding="utf-8"))["count"] == 3


def test_invalid_config_exits_with_message_not_traceback(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NAB_USERNAME", "jane.citizen")
    monkeypatch.setenv("NAB_PASSWORD", "s3cret-Passw0rd")
    (tmp_path / "none.yaml").write_text("browser:\n  timeout_seconds: 0\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        _run(tmp_path, "list-accounts")

    message = str(exc.value.code)
    assert message.startswith("Invalid configuration: browser.timeout_seconds")
    assert "s3cret-Passw0rd" not in message
