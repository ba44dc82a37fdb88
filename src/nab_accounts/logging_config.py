import logging
import os
from pathlib import Path
from typing import Iterable, Optional


REDACTED = "***"


class SecretRedactingFilter(logging.Filter):
    """
    Replace known secret values (portal username/password) in every record before it is emitted.
    """

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self.secrets: set[str] = set()
        self.add(*secrets)

    def add(self, *secrets: str) -> None:
        # Very short values would redact unrelated text; portal credentials are never that short.
        for s in secrets:
            if s and len(s) >= 3:
                self.secrets.add(s)

    def redact(self, text: str) -> str:
        for s in sorted(self.secrets, key=len, reverse=True):
            text = text.replace(s, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        if record.exc_info and record.exc_info[1] is not None:
            # Formatters cache exc_text; pre-render it so the redacted version is what gets cached.
            exc_text = logging.Formatter().formatException(record.exc_info)
            record.exc_text = self.redact(exc_text)
            record.exc_info = None
        return True


_secret_filter = SecretRedactingFilter()


def install_secret_filter(*secrets: str) -> SecretRedactingFilter:
    """
    Register secrets with the process-wide redaction filter and attach it to all root handlers.
    """
    _secret_filter.add(*secrets)
    for handler in logging.getLogger().handlers:
        if _secret_filter not in handler.filters:
            handler.addFilter(_secret_filter)
    return _secret_filter


def configure_logging(level: str = "INFO", file_path: Optional[str] = None) -> None:
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.addFilter(_secret_filter)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=handlers,
        force=True,  # allow configure_logging() to be called multiple times (CLI does this)
    )

    # Reduce noise from chatty libraries
    for noisy in ("playwright", "asyncio"):
        logging.getLogger(noisy).setLevel(os.getenv("NOISY_LOG_LEVEL", "WARNING"))
