from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal
from typing import Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")

DEFAULT_BASE_URL = "https://www.nab.com.au"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/91.0.4472.124 Safari/537.36"
)


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def parse_duration_seconds(value: Union[str, int, float], default: float = 30.0) -> float:
    """
    Parse timeouts like "30", "30s", "90s", "2m", "1m30s", "500ms".

    Bare numbers are seconds. Unparseable values fall back to `default` rather than failing startup.
    """
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else default
    s = (value or "").strip().lower()
    if not s:
        return default
    try:
        n = float(s)
        return n if n > 0 else default
    except ValueError:
        pass

    pos = 0
    total = 0.0
    for m in _DURATION_PART_RE.finditer(s):
        if m.start() != pos:
            return default
        pos = m.end()
        n = float(m.group(1))
        unit = m.group(2)
        total += {"ms": n / 1000, "s": n, "m": n * 60, "h": n * 3600}[unit]
    if pos != len(s) or total <= 0:
        return default
    return total


def _default_config_from_env() -> dict:
    """
    Provide a sensible env-only config so most users only need `.env`.

    YAML remains an optional advanced override.
    """
    return {
        "provider": os.getenv("NAB_PROVIDER", "portal"),
        "portal": {
            "username": os.getenv("NAB_USERNAME", ""),
            "password": os.getenv("NAB_PASSWORD", ""),
            "base_url": os.getenv("NAB_BASE_URL", DEFAULT_BASE_URL),
        },
        "browser": {
            "timeout_seconds": parse_duration_seconds(os.getenv("BROWSER_TIMEOUT", "")),
            "headless": _env_bool("BROWSER_HEADLESS", default=True),
            "screenshot_path": os.getenv("BROWSER_SCREENSHOT_PATH", "data/screenshots"),
            "user_agent": os.getenv("BROWSER_USER_AGENT", "") or DEFAULT_USER_AGENT,
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", ""),
        },
    }


class SessionConfig(BaseModel):
    """
    Everything one acquisition needs, handed to the engine by the calling layer.

    Immutable once built; the engine never reads environment state itself.
    """

    model_config = ConfigDict(frozen=True)

    username: str = Field(repr=False)
    password: str = Field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = Field(default=30.0, gt=0)
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    screenshot_path: str = "data/screenshots"

    @property
    def timeout_ms(self) -> int:
        return int(self.timeout_seconds * 1000)


class PortalConfig(BaseModel):
    username: str = ""
    password: str = Field(default="", repr=False)
    base_url: str = DEFAULT_BASE_URL

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, v: str) -> str:
        base_url = (v or "").strip().rstrip("/") or DEFAULT_BASE_URL
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"portal.base_url must be a full URL like '{DEFAULT_BASE_URL}'")
        return base_url


class BrowserConfig(BaseModel):
    timeout_seconds: float = Field(default=30.0, gt=0)
    headless: bool = True
    screenshot_path: str = "data/screenshots"
    user_agent: str = DEFAULT_USER_AGENT

    @field_validator("timeout_seconds", mode="before")
    @classmethod
    def _parse_timeout(cls, v: object) -> object:
        # YAML may carry "45s" / "2m" just like the env var.
        if isinstance(v, str):
            return parse_duration_seconds(v)
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = ""


class AppConfig(BaseModel):
    # "sample" serves fixed data without a browser (offline testing / demos).
    provider: Literal["portal", "sample"] = "portal"
    portal: PortalConfig = PortalConfig()
    browser: BrowserConfig = BrowserConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def _require_credentials(self) -> "AppConfig":
        if self.provider == "portal" and not (self.portal.username and self.portal.password):
            raise ValueError("NAB_USERNAME and NAB_PASSWORD are required when provider is 'portal'")
        return self

    def session_config(self, **overrides: object) -> SessionConfig:
        data = {
            "username": self.portal.username,
            "password": self.portal.password,
            "base_url": self.portal.base_url,
            "timeout_seconds": self.browser.timeout_seconds,
            "headless": self.browser.headless,
            "user_agent": self.browser.user_agent,
            "screenshot_path": self.browser.screenshot_path,
        }
        data.update({k: v for k, v in overrides.items() if v is not None})
        return SessionConfig(**data)


def load_config(path: Union[str, Path], **overrides: object) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    if overrides:
        merged = _deep_merge(merged, overrides)
    return AppConfig.model_validate(merged)
