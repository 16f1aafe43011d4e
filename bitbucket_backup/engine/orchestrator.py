"""
Backup Orchestrator — Drives one backup run end to end.

    discover → prepare backup root → dispatch synchronizations
             → barrier → verify → summarize → record

Repositories run on a bounded thread pool. Admission is gated by a
semaphore acquired before each submit, so at most ``max_parallel_jobs``
synchronizations are ever in flight and the progress bar tracks real
dispatches. A failing repository never cancels the others.

## Usage

    orchestrator = BackupOrchestrator(config, client, synchronizer, verifier, reporter)
    result = orchestrator.run()
    sys.exit(result.exit_code)
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime
from typing import List, Optional

from ..config.loader import WorkspaceConfig
from ..errors import ConfigError, DiscoveryError
from ..logging_config import log_success
from ..mirror.synchronizer import RepositorySynchronizer
from ..mirror.verifier import BackupVerifier
from ..models.outcome import (
    BackupRunResult,
    OutcomeLedger,
    RepositoryOutcome,
    VerificationResult,
)
from ..persistence.run_record import load_run_record, save_run_record
from ..reporting.reporter import Reporter

logger = logging.getLogger(__name__)


class BackupOrchestrator:
    """
    Runs discovery, fans out synchronizations, and reports.

    ``discovery`` needs ``list_repositories()``, ``synchronizer`` needs
    ``sync(slug)``, ``verifier`` needs ``verify(slug)``; tests pass fakes.
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        discovery,
        synchronizer: Optional[RepositorySynchronizer] = None,
        verifier: Optional[BackupVerifier] = None,
        reporter: Optional[Reporter] = None,
    ):
        self.config = config
        self.discovery = discovery
        self.synchronizer = synchronizer or RepositorySynchronizer(config)
        self.verifier = verifier
        self.reporter = reporter or Reporter(config)

    @property
    def sequential(self) -> bool:
        return self.config.max_parallel_jobs <= 1 or self.config.dry_run

    def run(self) -> BackupRunResult:
        started_at = datetime.now()

        repositories = self.discovery.list_repositories()
        if not repositories:
            raise DiscoveryError("No repositories found")

        logger.info(f"Found {len(repositories)} repositories to backup")
        if self.config.verbose:
            for slug in repositories:
                logger.info(f"  {slug}")

        if not self.config.dry_run:
            self._prepare_backup_root()

        ledger = OutcomeLedger()
        result = BackupRunResult(
            workspace=self.config.workspace,
            repositories=list(repositories),
            ledger=ledger,
            started_at=started_at,
            dry_run=self.config.dry_run,
        )

        with self.reporter.progress(len(repositories)) as bar:
            if self.sequential:
                self._dispatch_sequential(repositories, ledger, bar)
            else:
                self._dispatch_pool(repositories, ledger, bar)

        successful, failed = ledger.counts()
        logger.info(
            f"Processed {len(ledger)} repositories: "
            f"{successful} successful, {failed} failed"
        )

        if self.config.verify:
            if self.config.dry_run:
                logger.info("Skipping verification in dry-run mode")
            else:
                result.verifications = self._verify(ledger.successful)

        result.finished_at = datetime.now()
        self.reporter.render_summary(result)

        if not self.config.dry_run:
            save_run_record(result, self.config.backup_root)

        if failed:
            logger.warning("Some repositories failed to backup")
        else:
            log_success(logger, "All repositories backed up")

        return result

    # ─── Setup ──────────────────────────────────────────────

    def _prepare_backup_root(self) -> None:
        root = self.config.backup_root
        if not root.is_dir():
            try:
                root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ConfigError(f"Backup directory is not writable: {root} ({e})") from e
            logger.info(f"Created backup directory: {root}")
            return

        previous = None
        try:
            previous = load_run_record(root)
        except (OSError, ValueError) as e:
            logger.debug(f"Ignoring unreadable run record: {e}")
        if previous and previous.finished_at_iso:
            logger.info(
                f"Previous run finished {previous.finished_at_iso} "
                f"({len(previous.failed)} failed of {previous.total})"
            )

    # ─── Dispatch ───────────────────────────────────────────

    def _sync_one(self, slug: str, ledger: OutcomeLedger) -> RepositoryOutcome:
        try:
            outcome = self.synchronizer.sync(slug)
        except Exception as e:
            logger.exception(f"Unexpected error while processing {slug}")
            outcome = RepositoryOutcome.failure(slug, f"unexpected error: {e}")
        ledger.record(outcome)
        return outcome

    def _dispatch_sequential(self, repositories: List[str], ledger: OutcomeLedger, bar) -> None:
        for slug in repositories:
            ledger.mark_dispatched()
            bar.update(1)
            self._sync_one(slug, ledger)

    def _dispatch_pool(self, repositories: List[str], ledger: OutcomeLedger, bar) -> None:
        cap = self.config.max_parallel_jobs
        slots = threading.BoundedSemaphore(cap)
        futures = []

        logger.debug(f"Dispatching with up to {cap} parallel jobs")

        with ThreadPoolExecutor(max_workers=cap, thread_name_prefix="repo-sync") as pool:
            for slug in repositories:
                slots.acquire()  # blocks until a running sync finishes
                ledger.mark_dispatched()
                bar.update(1)
                future = pool.submit(self._sync_one, slug, ledger)
                future.add_done_callback(lambda _f: slots.release())
                futures.append(future)

            # Barrier: nothing below runs until every repository is terminal
            wait(futures)

        # Re-raise anything _sync_one failed to turn into an outcome
        for future in futures:
            future.result()

    # ─── Verification ───────────────────────────────────────

    def _verify(self, slugs: List[str]) -> List[VerificationResult]:
        verifier = self.verifier or BackupVerifier(self.config)
        logger.info("Verifying backups...")
        return [verifier.verify(slug) for slug in slugs]
