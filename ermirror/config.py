import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional, Union

from ermirror.services.crawl.locator import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = ".env"


def load_env_file(path: Union[str, Path]) -> List[str]:
    """Copy KEY=value lines from ``path`` into the process environment.

    Meant for ERMIRROR_* settings kept next to a mirror, but any key is
    accepted. Variables that already hold a non-empty value win over the file.
    Blank lines, ``#`` comments and lines without ``=`` are skipped; an
    ``export`` prefix and one pair of matching quotes around the value are
    stripped. A missing file is not an error.

    Returns the names that were set from the file.
    """
    env_path = Path(path)
    if not env_path.is_file():
        return []
    applied = []
    for line in env_path.read_text(encoding="utf-8").splitlines():
        s = line.strip()
        if not s or s.startswith("#") or "=" not in s:
            continue
        key, val = (part.strip() for part in s.split("=", 1))
        if key.startswith("export "):
            key = key[len("export "):].strip()
        if len(val) >= 2 and val[0] == val[-1] and val[0] in ("'", '"'):
            val = val[1:-1]
        if key and not os.environ.get(key):
            os.environ[key] = val
            applied.append(key)
    if applied:
        logger.debug("loaded %s from %s", ", ".join(applied), env_path)
    return applied


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    data_dir: str = "data"
    concurrency: int = 8
    max_retries: int = 5
    backoff_base: float = 0.1
    backoff_max: Optional[float] = None
    timeout: float = 15.0
    root_code: str = "0"
    overseas: bool = False
    max_depth: int = 5
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = "ER-Mirror/0.1"

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = DEFAULT_ENV_FILE) -> "Settings":
        """Build settings from ERMIRROR_* variables.

        ``env_file`` (relative to the working directory) is read first when it
        exists; pass None to use the process environment only.
        """
        if env_file is not None:
            load_env_file(env_file)
        d = cls()
        return cls(
            data_dir=os.getenv("ERMIRROR_DATA_DIR") or d.data_dir,
            concurrency=_env_int("ERMIRROR_CONCURRENCY", d.concurrency),
            max_retries=_env_int("ERMIRROR_MAX_RETRIES", d.max_retries),
            backoff_base=_env_float("ERMIRROR_BACKOFF_BASE", d.backoff_base),
            backoff_max=_env_float("ERMIRROR_BACKOFF_MAX", d.backoff_max),
            timeout=_env_float("ERMIRROR_TIMEOUT", d.timeout),
            root_code=os.getenv("ERMIRROR_ROOT_CODE") or d.root_code,
            overseas=_env_bool("ERMIRROR_OVERSEAS", d.overseas),
            max_depth=_env_int("ERMIRROR_MAX_DEPTH", d.max_depth),
            base_url=os.getenv("ERMIRROR_BASE_URL") or d.base_url,
            user_agent=os.getenv("ERMIRROR_USER_AGENT") or d.user_agent,
        )

    def override(self, **changes) -> "Settings":
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
