from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .config import AppConfig, load_config, parse_duration_seconds
from .errors import AccountNotFound, AcquisitionError
from .logging_config import configure_logging, install_secret_filter
from .models import AccountDetailsResponse, AccountsResponse, ErrorResponse
from .portal.extract import extract_accounts
from .providers import AccountProvider, build_provider


logger = logging.getLogger("nab_accounts")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_UNAVAILABLE = 3
EXIT_NOT_FOUND = 4


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nab_accounts")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )
    p.add_argument("--config", default="config.yaml", help="Path to optional YAML config (default: config.yaml)")

    sub = p.add_subparsers(dest="cmd", required=True)

    def _add_session_flags(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
        sp.add_argument(
            "--sample",
            action="store_true",
            help="Serve the fixed sample accounts instead of logging into the portal.",
        )
        sp.add_argument(
            "--timeout",
            default="",
            help="Session budget for the whole login + scrape, e.g. 45s or 2m (default: BROWSER_TIMEOUT or 30s).",
        )

    list_accounts = sub.add_parser("list-accounts", help="Log in and print all accounts as JSON")
    _add_session_flags(list_accounts)

    get_account = sub.add_parser("get-account", help="Print one account (with transactions) as JSON")
    get_account.add_argument("account_id", help="Account ID as shown by list-accounts")
    _add_session_flags(get_account)

    test_browser = sub.add_parser(
        "test-browser",
        help="Headful login + scrape with a longer budget, printing a readable summary (debug).",
    )
    test_browser.add_argument("--timeout", default="60s", help="Session budget (default: 60s)")

    snapshot = sub.add_parser(
        "parse-snapshot",
        help="Run account extraction over a saved HTML/text page snapshot (offline, no browser, no secrets).",
    )
    snapshot.add_argument("--file", required=True, help="Path to a saved .html or .txt page")
    snapshot.add_argument("--out", default="", help="Optional output JSON path (otherwise prints to stdout)")

    return p


def _load_app_config(args: argparse.Namespace) -> AppConfig:
    overrides: dict = {}
    if getattr(args, "sample", False):
        overrides["provider"] = "sample"
    try:
        cfg = load_config(args.config, **overrides)
    except ValidationError as e:
        # Rendered without input values: those can include the portal password.
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors(include_input=False)
        )
        raise SystemExit(f"Invalid configuration: {problems}") from e
    configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path or None)
    install_secret_filter(cfg.portal.username, cfg.portal.password)
    return cfg


def _session_overrides(args: argparse.Namespace, *, force_headful: bool = False) -> dict:
    overrides: dict = {}
    if force_headful or getattr(args, "headful", False):
        overrides["headless"] = False
    if getattr(args, "timeout", ""):
        overrides["timeout_seconds"] = parse_duration_seconds(args.timeout)
    return overrides


def _print_json(payload: dict, out: str = "") -> None:
    text = json.dumps(payload, indent=2, sort_keys=False)
    if out:
        Path(out).write_text(text, encoding="utf-8")
    else:
        print(text)


def _error_payload(err: AcquisitionError) -> dict:
    if isinstance(err, AccountNotFound):
        message = "Account not found"
    elif err.service_unavailable:
        message = "Service temporarily unavailable"
    else:
        message = "Failed to retrieve accounts"
    return ErrorResponse(error=err.code, message=message, details=str(err)).to_json_dict()


def _exit_code(err: AcquisitionError) -> int:
    if isinstance(err, AccountNotFound):
        return EXIT_NOT_FOUND
    if err.service_unavailable:
        return EXIT_UNAVAILABLE
    return EXIT_ERROR


def _run_provider_command(args: argparse.Namespace, provider: AccountProvider) -> int:
    t0 = time.time()
    try:
        if args.cmd == "list-accounts":
            accounts = provider.list_accounts()
            response = AccountsResponse(
                accounts=accounts,
                retrieved_at=datetime.now(timezone.utc),
                count=len(accounts),
            )
            _print_json(response.to_json_dict())
        else:
            details = provider.get_account_details(args.account_id)
            _print_json(AccountDetailsResponse(account=details).to_json_dict())
    except AcquisitionError as e:
        logger.error("Account retrieval failed (%s): %s", e.code, e)
        _print_json(_error_payload(e))
        return _exit_code(e)
    logger.info("Finished %s (seconds=%.2f)", args.cmd, time.time() - t0)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    try:
        if args.cmd == "parse-snapshot":
            p = Path(args.file)
            if not p.exists():
                raise SystemExit(f"File not found: {p}")
            accounts = extract_accounts(p.read_text(encoding="utf-8", errors="replace"))
            _print_json({"accounts": [a.to_json_dict() for a in accounts], "count": len(accounts)}, args.out)
            return EXIT_OK

        if args.cmd in ("list-accounts", "get-account"):
            cfg = _load_app_config(args)
            provider = build_provider(cfg, **_session_overrides(args))
            return _run_provider_command(args, provider)

        if args.cmd == "test-browser":
            cfg = _load_app_config(args)
            if cfg.provider != "portal":
                raise SystemExit("test-browser drives the real portal; unset NAB_PROVIDER=sample.")
            provider = build_provider(cfg, **_session_overrides(args, force_headful=True))
            logger.info("Starting NAB browser test...")
            try:
                accounts = provider.list_accounts()
            except AcquisitionError as e:
                logger.error("Error retrieving accounts (%s): %s", e.code, e)
                return _exit_code(e)
            logger.info("Successfully retrieved %d accounts:", len(accounts))
            for i, account in enumerate(accounts, start=1):
                logger.info("  %d. %s (%s) - Balance: $%s", i, account.name, account.id, account.balance.amount)
            return EXIT_OK
    except KeyboardInterrupt:
        logger.warning("Interrupted.")
        return 130

    raise AssertionError("Unhandled command")


if __name__ == "__main__":
    sys.exit(main())
