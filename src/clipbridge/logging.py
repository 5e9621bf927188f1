"""Centralized logging configuration for clipbridge.

Entry points (the CLI commands) call configure_logging() once, early.

stdout belongs to the MCP stdio transport when serving, so console output
always goes to stderr.

Logging Levels:
- DEBUG: Individual requests and frames
- INFO: Process lifecycle (spawn, exit, stop)
- WARNING: Helper stderr output, dropped frames, timeouts, unknown ids
- ERROR: Spawn failures
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, TextIO

LOG_LEVEL_ENV_VAR = "CLIPBRIDGE_LOG_LEVEL"

# Default retention period for log files
DEFAULT_LOG_RETENTION_DAYS = 7

# Clipboard text lands in logs through helper diagnostics, and people copy
# credentials all the time
DEFAULT_REDACT_PATTERNS: list[str] = [
    # API key prefixes (Anthropic, OpenAI, GitHub, Slack, Google)
    r"\b(sk-[A-Za-z0-9_-]{20,})\b",
    r"\b(ghp_[A-Za-z0-9]{20,})\b",
    r"\b(github_pat_[A-Za-z0-9_]{20,})\b",
    r"\b(xox[baprs]-[A-Za-z0-9-]{10,})\b",
    r"\b(AIza[0-9A-Za-z\-_]{20,})\b",
    # AWS access key ids
    r"\b(AKIA[0-9A-Z]{16})\b",
    # ENV-style assignments: API_KEY=secret or API_KEY: secret
    r"\b[A-Z0-9_]+(?:KEY|TOKEN|SECRET|PASSWORD|PASSWD)\s*[=:]\s*([^\s\"']{8,})",
    # Bearer tokens in headers
    r"\bBearer\s+([A-Za-z0-9._\-+=]{20,})\b",
    # PEM private key blocks
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----[\s\S]+?-----END [A-Z ]*PRIVATE KEY-----",
]


@dataclass
class SecretRedactor:
    """Masks secrets in log text, keeping the first and last 4 characters."""

    patterns: list[re.Pattern[str]] = field(default_factory=list)
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.patterns:
            self.patterns = [
                re.compile(p, re.IGNORECASE) for p in DEFAULT_REDACT_PATTERNS
            ]

    def redact(self, text: str) -> str:
        if not self.enabled or not text:
            return text
        for pattern in self.patterns:
            text = pattern.sub(self._mask_match, text)
        return text

    def _mask_match(self, match: re.Match[str]) -> str:
        full = match.group(0)
        if "PRIVATE KEY" in full:
            lines = full.strip().split("\n")
            if len(lines) >= 2:
                return f"{lines[0]}\n...redacted...\n{lines[-1]}"
            return "***PRIVATE KEY***"

        token = match.group(1) if match.lastindex else full
        if "..." in token:
            return full
        if len(token) < 12:
            masked = "***"
        else:
            masked = f"{token[:4]}...{token[-4:]}"
        return full.replace(token, masked) if token != full else masked


_redactor = SecretRedactor()


def configure_redaction(
    enabled: bool = True, extra_patterns: list[str] | None = None
) -> None:
    """Configure secret redaction for file logs.

    Args:
        enabled: Whether to enable redaction.
        extra_patterns: Additional regex patterns to match secrets.
    """
    global _redactor
    patterns = [re.compile(p, re.IGNORECASE) for p in DEFAULT_REDACT_PATTERNS]
    if extra_patterns:
        patterns.extend(re.compile(p, re.IGNORECASE) for p in extra_patterns)
    _redactor = SecretRedactor(patterns=patterns, enabled=enabled)


def prune_old_logs(
    logs_dir: Path,
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    suffix: str = ".jsonl",
) -> int:
    """Delete log files older than the retention period.

    Returns:
        Number of files deleted.
    """
    if not logs_dir.exists():
        return 0

    cutoff = datetime.now(UTC) - timedelta(days=retention_days)
    deleted = 0
    for entry in logs_dir.iterdir():
        if not entry.is_file() or not entry.name.endswith(suffix):
            continue
        try:
            mtime = datetime.fromtimestamp(entry.stat().st_mtime, UTC)
            if mtime < cutoff:
                entry.unlink()
                deleted += 1
        except OSError:
            pass  # Ignore errors on individual files
    return deleted


def _component(logger_name: str) -> str:
    """clipbridge.reader.manager -> reader"""
    parts = logger_name.split(".")
    if len(parts) >= 2 and parts[0] == "clipbridge":
        return parts[1]
    return parts[0]


def _structured_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Collect dotted ``extra`` keys such as ``process.pid`` or ``rpc.id``."""
    return {k: v for k, v in record.__dict__.items() if "." in k}


class JSONLHandler(logging.Handler):
    """Writes one JSON object per log record to a daily JSONL file.

    Files are named YYYY-MM-DD.jsonl under the logs directory; files older
    than the retention period are pruned on rotation. Messages and structured
    fields pass through the secret redactor.
    """

    def __init__(
        self,
        logs_dir: Path,
        retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    ):
        super().__init__()
        self._logs_dir = logs_dir
        self._logs_dir.mkdir(parents=True, exist_ok=True)
        self._retention_days = retention_days
        self._current_date: str | None = None
        self._file: TextIO | None = None

    def _get_log_file(self) -> TextIO:
        today = datetime.now(UTC).strftime("%Y-%m-%d")
        if self._current_date != today or self._file is None:
            if self._file:
                self._file.close()
            self._current_date = today
            self._file = (self._logs_dir / f"{today}.jsonl").open(
                "a", encoding="utf-8"
            )
            prune_old_logs(self._logs_dir, self._retention_days)
        return self._file

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry: dict[str, Any] = {
                "ts": datetime.now(UTC).isoformat(),
                "level": record.levelname,
                "component": _component(record.name),
                "logger": record.name,
                "message": _redactor.redact(record.getMessage()),
            }

            if record.exc_info:
                formatter = self.formatter or logging.Formatter()
                entry["exception"] = _redactor.redact(
                    formatter.formatException(record.exc_info)
                )

            if fields := _structured_fields(record):
                redacted = _redactor.redact(json.dumps(fields, default=str))
                try:
                    entry["extra"] = json.loads(redacted)
                except json.JSONDecodeError:
                    entry["extra"] = {"_redacted_raw": redacted}

            log_file = self._get_log_file()
            log_file.write(json.dumps(entry) + "\n")
            log_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None
        super().close()


class ComponentFormatter(logging.Formatter):
    """Adds a short ``component`` field derived from the logger name."""

    def format(self, record: logging.LogRecord) -> str:
        record.component = _component(record.name)
        return super().format(record)


def resolve_log_level(level: str | None = None) -> str:
    """Pick the log level from the argument, then the environment, then INFO."""
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO")
    level = level.upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        level = "INFO"
    return level


def configure_logging(
    level: str | None = None,
    use_rich: bool = False,
    log_to_file: bool = False,
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
) -> None:
    """Configure logging for clipbridge.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
            If None, uses CLIPBRIDGE_LOG_LEVEL env var or INFO.
        use_rich: Use Rich handler for colorful output.
        log_to_file: Also write logs to JSONL files in ~/.clipbridge/logs/.
        retention_days: Days of JSONL files to keep.
    """
    from clipbridge.config.paths import get_logs_path

    log_level = getattr(logging, resolve_log_level(level))

    handlers: list[logging.Handler] = []

    if use_rich:
        from rich.console import Console
        from rich.logging import RichHandler

        console_handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=False,
            show_path=False,
            show_time=True,
            markup=False,
        )
        console_handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    handlers.append(console_handler)

    if log_to_file:
        file_handler = JSONLHandler(get_logs_path(), retention_days=retention_days)
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,
    )

    # The MCP SDK logs every request at INFO
    for logger_name in ("mcp", "httpx", "httpcore"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)
