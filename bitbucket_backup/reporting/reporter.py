"""
Reporter — Live progress and the end-of-run summary.

Purely observational: nothing here feeds back into control flow.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import IO, Iterator, Optional

import click

from ..config.loader import WorkspaceConfig
from ..models.outcome import BackupRunResult, VerificationStatus

RULE = "=" * 42


def directory_size(path: Path) -> int:
    """Total bytes on disk under ``path`` (symlinks not followed)."""
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, name)).st_size
            except OSError:
                continue
    return total


def human_size(num_bytes: int) -> str:
    """Format like ``du -h``: 512B, 4.0K, 1.3G."""
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            if unit == "B":
                return f"{int(size)}B"
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}P"


class _NullProgress:
    def update(self, n_steps: int, current_item=None) -> None:
        pass


class Reporter:
    def __init__(self, config: WorkspaceConfig, stream: Optional[IO[str]] = None):
        self.config = config
        self.stream = stream

    @contextmanager
    def progress(self, total: int) -> Iterator:
        """Progress bar advanced once per dispatched repository; hidden in dry-run."""
        if self.config.dry_run or total <= 0:
            yield _NullProgress()
            return

        with click.progressbar(
            length=total,
            label="Backing up",
            show_pos=True,
            show_percent=True,
            file=self.stream,
        ) as bar:
            yield bar

    def backup_size(self) -> str:
        root = self.config.backup_root
        if not root.is_dir():
            return "N/A"
        return human_size(directory_size(root))

    def render_summary(self, result: BackupRunResult) -> None:
        def echo(line: str = "") -> None:
            click.echo(line, file=self.stream)

        outcomes = result.ledger.outcomes()
        seen = sum(o.branches_seen for o in outcomes if o.ok)
        updated = sum(o.branches_updated for o in outcomes if o.ok)

        echo()
        echo(RULE)
        echo("           BACKUP SUMMARY" + (" (DRY RUN)" if result.dry_run else ""))
        echo(RULE)
        echo(f"Workspace: {result.workspace}")
        echo(f"Total repositories: {result.total}")
        echo(f"Successful backups: {len(result.successful)}")
        echo(f"Failed backups: {len(result.failed)}")
        if not result.dry_run:
            echo(f"Branches updated: {updated}/{seen}")
        echo(f"Backup location: {self.config.backup_root}")
        echo(f"Backup size: {self.backup_size()}")
        echo(f"Backup time: {(result.finished_at or datetime.now()).strftime('%a %b %d %H:%M:%S %Y')}")
        echo(f"Duration: {result.duration_seconds:.1f}s")
        echo(RULE)

        partial = [o for o in outcomes if o.ok and o.failed_branches]
        if partial:
            echo()
            echo("Partially updated repositories:")
            for outcome in partial:
                echo(f"  - {outcome.slug} ({', '.join(outcome.failed_branches)})")

        problems = [
            v for v in result.verifications if v.status != VerificationStatus.OK
        ]
        if problems:
            echo()
            echo("Verification problems:")
            for v in problems:
                echo(f"  - {v.slug}: {v.status.value} ({v.message})")

        if result.failed:
            echo()
            echo("Failed repositories:")
            for slug in result.failed:
                echo(f"  - {slug}")

        if result.successful:
            echo()
            echo("Successful repositories:")
            for slug in result.successful:
                echo(f"  - {slug}")
