"""Configuration loading for the journal task service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from app.task_scanner import (
    DEFAULT_BATCH_PAUSE_SECONDS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_STALENESS_SECONDS,
    DEFAULT_WAIT_TIMEOUT_SECONDS,
)

DEFAULT_JOURNAL_FOLDER = "Journal"


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class AppConfig:
    workspace_path: Path
    journal_folder: str
    task_cache_timeout: float
    scan_wait_timeout: float
    scan_batch_size: int
    scan_batch_pause: float
    git_history: bool
    service_token: str | None
    log_dir: Path | None

    @property
    def journal_path(self) -> Path:
        return self.workspace_path / self.journal_folder


def _read_dotenv_value(dotenv_path: Path, key: str) -> str | None:
    """Read a single key from a .env file without mutating the environment."""
    if not dotenv_path.is_file():
        return None
    try:
        content = dotenv_path.read_text(encoding="utf-8")
    except OSError:
        return None

    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export ") :].strip()
        if "=" not in stripped:
            continue
        name, value = stripped.split("=", 1)
        if name.strip() != key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        return value or None
    return None


def _lookup(dotenv_path: Path, key: str) -> str | None:
    raw_value = os.environ.get(key)
    if raw_value is None:
        raw_value = _read_dotenv_value(dotenv_path, key)
    if raw_value is None:
        return None
    return raw_value.strip() or None


def _read_bool(raw_value: str | None, *, default: bool, key: str) -> bool:
    if raw_value is None:
        return default
    normalized = raw_value.lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{key} must be a boolean value.")


def _read_number(
    raw_value: str | None, *, default: float, key: str, allow_zero: bool = False
) -> float:
    if raw_value is None:
        return default
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number.") from exc
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{key} must be a positive number.")
    return value


def _read_int(raw_value: str | None, *, default: int, key: str) -> int:
    if raw_value is None:
        return default
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer.") from exc
    if value <= 0:
        raise ConfigError(f"{key} must be a positive integer.")
    return value


def _validate_journal_folder(folder: str, key: str) -> str:
    normalized = folder.replace("\\", "/").strip("/")
    if not normalized or Path(folder).is_absolute() or ".." in normalized.split("/"):
        raise ConfigError(f"{key} must be a relative folder inside the workspace.")
    return normalized


def load_config() -> AppConfig:
    """Load configuration from the environment, falling back to ./.env."""
    dotenv_path = Path.cwd() / ".env"

    workspace_key = "CALMDOWN_WORKSPACE_PATH"
    raw_workspace = _lookup(dotenv_path, workspace_key)
    if not raw_workspace:
        raise ConfigError(
            "CALMDOWN_WORKSPACE_PATH is required; set it to the workspace root path."
        )

    folder_key = "CALMDOWN_JOURNAL_FOLDER"
    journal_folder = _validate_journal_folder(
        _lookup(dotenv_path, folder_key) or DEFAULT_JOURNAL_FOLDER, folder_key
    )

    timeout_key = "CALMDOWN_TASK_CACHE_TIMEOUT"
    wait_key = "CALMDOWN_SCAN_WAIT_TIMEOUT"
    batch_key = "CALMDOWN_SCAN_BATCH_SIZE"
    pause_key = "CALMDOWN_SCAN_BATCH_PAUSE"
    git_key = "CALMDOWN_GIT_HISTORY"

    log_dir = _lookup(dotenv_path, "CALMDOWN_LOG_DIR")

    return AppConfig(
        workspace_path=Path(raw_workspace).resolve(),
        journal_folder=journal_folder,
        task_cache_timeout=_read_number(
            _lookup(dotenv_path, timeout_key),
            default=DEFAULT_STALENESS_SECONDS,
            key=timeout_key,
        ),
        scan_wait_timeout=_read_number(
            _lookup(dotenv_path, wait_key),
            default=DEFAULT_WAIT_TIMEOUT_SECONDS,
            key=wait_key,
        ),
        scan_batch_size=_read_int(
            _lookup(dotenv_path, batch_key), default=DEFAULT_BATCH_SIZE, key=batch_key
        ),
        scan_batch_pause=_read_number(
            _lookup(dotenv_path, pause_key),
            default=DEFAULT_BATCH_PAUSE_SECONDS,
            key=pause_key,
            allow_zero=True,
        ),
        git_history=_read_bool(
            _lookup(dotenv_path, git_key), default=False, key=git_key
        ),
        service_token=_lookup(dotenv_path, "CALMDOWN_SERVICE_TOKEN"),
        log_dir=Path(log_dir) if log_dir else None,
    )
