"""
Backup Verifier — Post-run structural check of a local clone.

Read-only and single-shot: no retries, no repairs. Results are reported
but never change a repository's outcome.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config.loader import WorkspaceConfig
from ..logging_config import log_success
from ..models.outcome import VerificationResult, VerificationStatus
from .git_ops import GitRunner, has_clone

logger = logging.getLogger(__name__)


class BackupVerifier:
    def __init__(self, config: WorkspaceConfig, git: Optional[GitRunner] = None):
        self.config = config
        self.git = git or GitRunner(timeout=config.git_timeout, secrets=config.secrets)

    def verify(self, slug: str) -> VerificationResult:
        repo_dir = self.config.repo_dir(slug)

        if not has_clone(repo_dir):
            message = "No .git directory"
            logger.error(f"Backup verification failed for {slug}: {message}")
            return VerificationResult(slug, VerificationStatus.FAILED, message)

        if not self.git.last_commit(repo_dir):
            message = "Cannot access git log"
            logger.error(f"Backup verification failed for {slug}: {message}")
            return VerificationResult(slug, VerificationStatus.FAILED, message)

        count = self.git.commit_count(repo_dir)
        if not count:
            message = "No commits found"
            logger.warning(f"Backup verification warning for {slug}: {message}")
            return VerificationResult(slug, VerificationStatus.WARNING, message, commit_count=0)

        log_success(logger, f"Backup verified for {slug} ({count} commits)")
        return VerificationResult(slug, VerificationStatus.OK, commit_count=count)
