"""
Config Loader — Build the run configuration from a settings file.

Settings come from a dotenv-style file (default: config.env). Keys missing
from the file fall back to the process environment, so the tool also runs
from a scheduler that only injects env vars.

## Settings

    ATLASSIAN_EMAIL=ops@example.com     # required
    API_TOKEN=ATATT3xFfGF0...           # required
    ORGNAME=my-workspace                # required
    BACKUP_DIR=/srv/backups/bitbucket   # optional

Optional tuning keys: GIT_USERNAME, BITBUCKET_API_URL, GIT_HOST,
HTTP_TIMEOUT, GIT_TIMEOUT, MAX_PAGES, MIN_FREE_SPACE_GB.

## Usage

    from bitbucket_backup.config.loader import load_config

    config = load_config(Path("config.env"), jobs=8, verify=True)
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Tuple, TypeVar
from urllib.parse import quote

from dotenv import dotenv_values

from ..errors import ConfigError

logger = logging.getLogger(__name__)

T = TypeVar("T")

REQUIRED_KEYS = ("ATLASSIAN_EMAIL", "API_TOKEN", "ORGNAME")

DEFAULT_CONFIG_FILE = "config.env"
DEFAULT_GIT_USERNAME = "x-bitbucket-api-token-auth"
DEFAULT_API_BASE_URL = "https://api.bitbucket.org/2.0"
DEFAULT_GIT_HOST = "bitbucket.org"
DEFAULT_MAX_PARALLEL_JOBS = 4


def default_backup_root() -> Path:
    return Path(tempfile.gettempdir()) / "bitbucket-backup"


@dataclass(frozen=True)
class WorkspaceConfig:
    """Everything one backup run needs. Built once, never mutated."""

    account_email: str
    api_token: str
    workspace: str
    backup_root: Path

    # Run parameters (from the command line)
    max_parallel_jobs: int = DEFAULT_MAX_PARALLEL_JOBS
    skip_existing: bool = False
    verify: bool = False
    dry_run: bool = False
    verbose: bool = False

    # Tuning
    git_username: str = DEFAULT_GIT_USERNAME
    api_base_url: str = DEFAULT_API_BASE_URL
    git_host: str = DEFAULT_GIT_HOST
    http_timeout: float = 30.0
    git_timeout: float = 900.0
    max_pages: int = 100
    min_free_space_gb: float = 0.0

    def repo_dir(self, slug: str) -> Path:
        """Local clone location for a repository."""
        return self.backup_root / slug

    def clone_url(self, slug: str) -> str:
        """Authenticated HTTPS remote for a repository."""
        username = quote(self.git_username, safe="")
        token = quote(self.api_token, safe="")
        return f"https://{username}:{token}@{self.git_host}/{self.workspace}/{slug}.git"

    @property
    def secrets(self) -> Tuple[str, ...]:
        """Token spellings that must never reach the logs."""
        return tuple({self.api_token, quote(self.api_token, safe="")})

    @property
    def repositories_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/repositories/{self.workspace}"

    def __repr__(self) -> str:
        # Keep the token out of tracebacks and debug logs
        return (
            f"WorkspaceConfig(workspace={self.workspace!r}, "
            f"account_email={self.account_email!r}, "
            f"backup_root={str(self.backup_root)!r}, "
            f"max_parallel_jobs={self.max_parallel_jobs}, "
            f"dry_run={self.dry_run}, skip_existing={self.skip_existing}, "
            f"verify={self.verify})"
        )


def read_settings(
    path: Path,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Merge the settings file with the environment.

    Values from the file win; the environment only fills gaps.
    Raises ConfigError if the file is missing and the environment
    cannot supply the required keys on its own.
    """
    env = os.environ if environ is None else environ

    settings: Dict[str, str] = {}
    if path.is_file():
        for key, value in dotenv_values(path).items():
            if value is not None and value.strip():
                settings[key] = value.strip()
        logger.debug(f"Loaded {len(settings)} setting(s) from {path}")
    elif not all(env.get(key) for key in REQUIRED_KEYS):
        raise ConfigError(
            f"Configuration file not found: {path}. "
            "Copy config.env.example and fill in your values."
        )

    for key, value in env.items():
        if key not in settings and value and value.strip():
            settings[key] = value.strip()

    return settings


def _parse(
    settings: Mapping[str, str],
    key: str,
    convert: Callable[[str], T],
    default: T,
) -> T:
    raw = settings.get(key)
    if raw is None:
        return default
    try:
        return convert(raw)
    except ValueError:
        raise ConfigError(f"Invalid value for {key}: {raw!r}") from None


def load_config(
    path: Path | str = DEFAULT_CONFIG_FILE,
    *,
    dry_run: bool = False,
    verbose: bool = False,
    skip_existing: bool = False,
    jobs: int = DEFAULT_MAX_PARALLEL_JOBS,
    verify: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> WorkspaceConfig:
    """
    Load and validate the workspace configuration.

    Raises:
        ConfigError: missing credentials, unparsable values, or an
            invalid job count.
    """
    path = Path(path)
    settings = read_settings(path, environ)

    missing = [key for key in REQUIRED_KEYS if not settings.get(key)]
    if missing:
        raise ConfigError(
            f"Missing required configuration in {path}: {', '.join(missing)}. "
            "Please ensure ATLASSIAN_EMAIL, API_TOKEN, and ORGNAME are set."
        )

    if jobs < 1:
        raise ConfigError(f"Job count must be at least 1, got {jobs}")

    backup_dir = settings.get("BACKUP_DIR")
    backup_root = Path(backup_dir).expanduser() if backup_dir else default_backup_root()

    max_pages = _parse(settings, "MAX_PAGES", int, 100)
    if max_pages < 1:
        raise ConfigError(f"MAX_PAGES must be at least 1, got {max_pages}")

    return WorkspaceConfig(
        account_email=settings["ATLASSIAN_EMAIL"],
        api_token=settings["API_TOKEN"],
        workspace=settings["ORGNAME"],
        backup_root=backup_root,
        max_parallel_jobs=jobs,
        skip_existing=skip_existing,
        verify=verify,
        dry_run=dry_run,
        verbose=verbose,
        git_username=settings.get("GIT_USERNAME", DEFAULT_GIT_USERNAME),
        api_base_url=settings.get("BITBUCKET_API_URL", DEFAULT_API_BASE_URL),
        git_host=settings.get("GIT_HOST", DEFAULT_GIT_HOST),
        http_timeout=_parse(settings, "HTTP_TIMEOUT", float, 30.0),
        git_timeout=_parse(settings, "GIT_TIMEOUT", float, 900.0),
        max_pages=max_pages,
        min_free_space_gb=_parse(settings, "MIN_FREE_SPACE_GB", float, 0.0),
    )
