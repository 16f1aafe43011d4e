"""
Repository Synchronizer — Bring one local clone up to date with Bitbucket.

    ABSENT → CLONING → CLONED → FETCHING → BRANCH_SYNCING → DONE
                ↘           ↘                  ↘ (per branch: warn, continue)
                 FAILED      FAILED

Clone and fetch failures are terminal for the repository. A branch that
cannot be checked out or pulled is logged and skipped; the repository
still counts as backed up, just not fully current.

Instances hold no per-repository state and are shared by all workers.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ..config.loader import WorkspaceConfig
from ..logging_config import log_success
from ..models.outcome import RepositoryOutcome
from ..reliability.retry import DEFAULT_POLICY, RetryPolicy, retry_call
from .git_ops import GitResult, GitRunner, clear_directory, has_clone

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    ABSENT = "absent"
    CLONING = "cloning"
    CLONED = "cloned"
    FETCHING = "fetching"
    BRANCH_SYNCING = "branch_syncing"
    DONE = "done"
    FAILED = "failed"


class RepositorySynchronizer:
    """Clone-or-update a single repository and every remote branch in it."""

    def __init__(
        self,
        config: WorkspaceConfig,
        git: Optional[GitRunner] = None,
        retry_policy: RetryPolicy = DEFAULT_POLICY,
    ):
        self.config = config
        self.git = git or GitRunner(
            timeout=config.git_timeout,
            secrets=config.secrets,
        )
        self.retry_policy = retry_policy

    def _enter(self, slug: str, state: SyncState) -> SyncState:
        logger.debug(f"{slug}: {state.value}")
        return state

    def sync(self, slug: str) -> RepositoryOutcome:
        """Run the full clone/fetch/branch cycle for ``slug``."""
        started = time.monotonic()
        outcome = self._sync(slug)
        outcome.duration_seconds = round(time.monotonic() - started, 3)
        return outcome

    def _sync(self, slug: str) -> RepositoryOutcome:
        if self.config.dry_run:
            logger.info(f"[DRY RUN] Would process repository: {slug}")
            return RepositoryOutcome.success(slug, dry_run=True)

        repo_dir = self.config.repo_dir(slug)
        try:
            repo_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create backup directory for {slug}: {e}")
            self._enter(slug, SyncState.FAILED)
            return RepositoryOutcome.failure(slug, f"cannot create {repo_dir}: {e}")

        cloned = has_clone(repo_dir)

        if self.config.skip_existing and cloned:
            logger.info(f"Skipping existing repository: {slug}")
            return RepositoryOutcome.success(slug, skipped=True)

        if not cloned:
            self._enter(slug, SyncState.CLONING)
            logger.info(f"Cloning repository: {slug}")
            result = retry_call(
                lambda: self._clone(slug, repo_dir),
                policy=self.retry_policy,
                description=f"git clone {slug}",
            )
            if not result:
                clear_directory(repo_dir)
                logger.error(f"Failed to clone {slug}: {result.error}")
                self._enter(slug, SyncState.FAILED)
                return RepositoryOutcome.failure(slug, f"clone failed: {result.error}")
            log_success(logger, f"Successfully cloned {slug}")
        else:
            logger.info(f"Repository already exists, updating: {slug}")
            remote = self.git.ensure_remote_url(repo_dir, self.config.clone_url(slug))
            if not remote:
                logger.warning(f"Could not refresh remote URL for {slug}: {remote.error}")

        self._enter(slug, SyncState.CLONED)

        self._enter(slug, SyncState.FETCHING)
        result = retry_call(
            lambda: self.git.fetch_all(repo_dir),
            policy=self.retry_policy,
            description=f"git fetch {slug}",
        )
        if not result:
            logger.error(f"Failed to fetch branches for {slug}: {result.error}")
            self._enter(slug, SyncState.FAILED)
            return RepositoryOutcome.failure(slug, f"fetch failed: {result.error}")

        branches = self.git.remote_branches(repo_dir)
        if branches is None:
            logger.error(f"Failed to list remote branches for {slug}")
            self._enter(slug, SyncState.FAILED)
            return RepositoryOutcome.failure(slug, "could not list remote branches")

        self._enter(slug, SyncState.BRANCH_SYNCING)
        updated, failed = self._sync_branches(slug, repo_dir, branches)

        self._enter(slug, SyncState.DONE)
        log_success(
            logger,
            f"Completed backup of {slug} ({updated}/{len(branches)} branches updated)",
        )
        return RepositoryOutcome.success(
            slug,
            branches_seen=len(branches),
            branches_updated=updated,
            failed_branches=failed,
        )

    def _clone(self, slug: str, repo_dir: Path) -> GitResult:
        # A clone killed mid-transfer leaves a partial .git behind, and git
        # refuses to clone into a non-empty directory
        clear_directory(repo_dir)
        return self.git.clone(self.config.clone_url(slug), repo_dir)

    def _sync_branches(self, slug, repo_dir, branches):
        updated = 0
        failed: List[str] = []

        for branch in branches:
            logger.debug(f"  {slug}: updating branch {branch}")

            checkout = self.git.checkout_tracking(repo_dir, branch)
            if not checkout:
                logger.warning(f"  {slug}: failed to checkout {branch} branch: {checkout.error}")
                failed.append(branch)
                continue

            pull = retry_call(
                lambda: self.git.pull(repo_dir, branch),
                policy=self.retry_policy,
                description=f"git pull {slug} {branch}",
            )
            if not pull:
                logger.warning(f"  {slug}: failed to update {branch} branch: {pull.error}")
                failed.append(branch)
                continue

            updated += 1
            logger.debug(f"  {slug}: updated {branch} branch")

        return updated, failed
