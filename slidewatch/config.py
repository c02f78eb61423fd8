"""
Runtime configuration for slidewatch.

Settings come from environment variables. A ``.env`` file is loaded first when
present (python-dotenv), so local development and deployed pollers read the
same keys:

    SLIDEWATCH_MAX_CHANGES    Change log capacity per presentation (default 500)
    SLIDEWATCH_AUTO_START     Start monitoring implicitly on first cycle (default false)
    SLIDEWATCH_LOCK_TIMEOUT   Seconds to wait for a running cycle (default: block)
    SLIDEWATCH_LOG_LEVEL      Logging level name (default INFO)
    SLIDEWATCH_DB_URL         Full Postgres URL, or the individual params below
    SLIDEWATCH_DB_HOST / SLIDEWATCH_DB_PORT / SLIDEWATCH_DB_NAME /
    SLIDEWATCH_DB_USER / SLIDEWATCH_DB_PASSWORD
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Reference capacity of the change log (oldest records evicted first)
DEFAULT_MAX_CHANGES = 500

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    """Resolved slidewatch settings."""
    max_changes: int = DEFAULT_MAX_CHANGES
    auto_start: bool = False
    lock_timeout: Optional[float] = None
    log_level: str = "INFO"
    db_url: Optional[str] = None
    db_host: Optional[str] = None
    db_port: int = 5432
    db_name: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None

    @property
    def has_database(self) -> bool:
        """True when enough connection details are present for Postgres."""
        if self.db_url:
            return True
        return all([self.db_host, self.db_name, self.db_user, self.db_password])


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {raw!r}")


def _parse_positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _parse_timeout(name: str, raw: str) -> Optional[float]:
    if not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from an environment mapping (defaults to ``os.environ``).

    Raises:
        ValueError: If a variable is present but malformed
    """
    env = os.environ if environ is None else environ

    max_changes = DEFAULT_MAX_CHANGES
    if env.get("SLIDEWATCH_MAX_CHANGES"):
        max_changes = _parse_positive_int("SLIDEWATCH_MAX_CHANGES", env["SLIDEWATCH_MAX_CHANGES"])

    auto_start = _parse_bool("SLIDEWATCH_AUTO_START", env.get("SLIDEWATCH_AUTO_START", ""))
    lock_timeout = _parse_timeout("SLIDEWATCH_LOCK_TIMEOUT", env.get("SLIDEWATCH_LOCK_TIMEOUT", ""))

    log_level = env.get("SLIDEWATCH_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"SLIDEWATCH_LOG_LEVEL is not a logging level: {log_level!r}")

    db_port = 5432
    if env.get("SLIDEWATCH_DB_PORT"):
        db_port = _parse_positive_int("SLIDEWATCH_DB_PORT", env["SLIDEWATCH_DB_PORT"])

    return Settings(
        max_changes=max_changes,
        auto_start=auto_start,
        lock_timeout=lock_timeout,
        log_level=log_level,
        db_url=env.get("SLIDEWATCH_DB_URL") or None,
        db_host=env.get("SLIDEWATCH_DB_HOST") or None,
        db_port=db_port,
        db_name=env.get("SLIDEWATCH_DB_NAME") or None,
        db_user=env.get("SLIDEWATCH_DB_USER") or None,
        db_password=env.get("SLIDEWATCH_DB_PASSWORD") or None,
    )


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load ``.env`` (if any) into the process environment, then read Settings.

    Variables already set in the environment win over the file.

    Args:
        env_file: Explicit .env path. Defaults to python-dotenv's lookup
                  from the current working directory.
    """
    if env_file is not None:
        env_path = Path(env_file)
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment from {env_path}")
        else:
            logger.warning(f"No .env file found at {env_path}")
    else:
        load_dotenv()
    return settings_from_env()


def configure_logging(level: Union[str, int] = "INFO") -> None:
    """Configure root logging for scripts and pollers."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
