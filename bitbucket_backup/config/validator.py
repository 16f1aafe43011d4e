"""
Configuration Validator — Sanity checks before any work starts.

Only an unwritable backup root is fatal. Odd-looking credentials and low
disk space are reported as warnings so that a scheduled run still gets a
chance to do its job.

## Usage

    from bitbucket_backup.config.validator import ConfigValidator

    report = ConfigValidator(config).validate()   # raises ConfigError
    for warning in report.warnings:
        ...
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..errors import ConfigError
from .loader import WorkspaceConfig

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"^ATATT[0-9A-Za-z_=-]+$")
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

GIGABYTE = 1024 ** 3


@dataclass
class ValidationReport:
    """Outcome of a validation pass."""

    warnings: List[str] = field(default_factory=list)
    free_space_bytes: Optional[int] = None

    @property
    def clean(self) -> bool:
        return not self.warnings


def nearest_existing_parent(path: Path) -> Path:
    """Walk up until an existing directory is found."""
    current = path
    while not current.exists() and current != current.parent:
        current = current.parent
    return current


class ConfigValidator:
    """Validate a loaded WorkspaceConfig against the host."""

    def __init__(self, config: WorkspaceConfig):
        self.config = config

    def validate(self) -> ValidationReport:
        report = ValidationReport()

        self._check_backup_root()

        if not TOKEN_PATTERN.match(self.config.api_token):
            report.warnings.append("API token format may be invalid")

        if not EMAIL_PATTERN.match(self.config.account_email):
            report.warnings.append(
                f"Email format may be invalid: {self.config.account_email}"
            )

        report.free_space_bytes = self._free_space()
        if self.config.min_free_space_gb > 0 and report.free_space_bytes is not None:
            free_gb = report.free_space_bytes / GIGABYTE
            if free_gb < self.config.min_free_space_gb:
                report.warnings.append(
                    f"Only {free_gb:.1f} GB free under {self.config.backup_root}, "
                    f"below the configured minimum of {self.config.min_free_space_gb:g} GB"
                )

        for warning in report.warnings:
            logger.warning(warning)

        logger.info("Configuration validated successfully")
        return report

    def _check_backup_root(self) -> None:
        root = self.config.backup_root
        anchor = nearest_existing_parent(root)

        if anchor.exists() and not anchor.is_dir():
            raise ConfigError(f"Backup location is not a directory: {anchor}")

        if not os.access(anchor, os.W_OK | os.X_OK):
            raise ConfigError(f"Backup directory is not writable: {root}")

    def _free_space(self) -> Optional[int]:
        try:
            return shutil.disk_usage(nearest_existing_parent(self.config.backup_root)).free
        except OSError as e:
            logger.debug(f"Could not determine free space: {e}")
            return None
