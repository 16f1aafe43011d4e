"""
Run Record — JSON summary of the last backup run.

Written to ``<backup_root>/BACKUP_LASTRUN.json`` after every real run so
that an operator (or a monitoring job) can tell when the last backup
happened and what it left behind.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.outcome import BackupRunResult

logger = logging.getLogger(__name__)

RUN_RECORD_FILE = "BACKUP_LASTRUN.json"


class RepositoryRecord(BaseModel):
    slug: str
    status: str
    branches_seen: int = 0
    branches_updated: int = 0
    failed_branches: List[str] = Field(default_factory=list)
    skipped: bool = False
    error: Optional[str] = None
    duration_seconds: float = 0.0
    verification: Optional[str] = None


class RunRecord(BaseModel):
    """Serializable view of a BackupRunResult."""

    schema_version: int = 1
    workspace: str
    started_at_iso: str
    finished_at_iso: Optional[str] = None
    total: int
    successful: List[str]
    failed: List[str]
    repositories: List[RepositoryRecord]
    exit_code: int

    @classmethod
    def from_result(cls, result: BackupRunResult) -> "RunRecord":
        verification: Dict[str, str] = {
            v.slug: v.status.value for v in result.verifications
        }
        return cls(
            workspace=result.workspace,
            started_at_iso=result.started_at.isoformat(),
            finished_at_iso=result.finished_at.isoformat() if result.finished_at else None,
            total=result.total,
            successful=result.successful,
            failed=result.failed,
            repositories=[
                RepositoryRecord(
                    slug=o.slug,
                    status=o.status.value,
                    branches_seen=o.branches_seen,
                    branches_updated=o.branches_updated,
                    failed_branches=o.failed_branches,
                    skipped=o.skipped,
                    error=o.error,
                    duration_seconds=o.duration_seconds,
                    verification=verification.get(o.slug),
                )
                for o in result.ledger.outcomes()
            ],
            exit_code=result.exit_code,
        )


def save_run_record(result: BackupRunResult, backup_root: Path) -> Optional[Path]:
    """
    Write the run record next to the clones.

    Uses atomic write (write to temp, then rename). Failures are logged
    and swallowed: a missing record must not fail an otherwise good run.
    """
    path = backup_root / RUN_RECORD_FILE
    temp_path = path.with_suffix(".tmp")

    try:
        record = RunRecord.from_result(result)
        with temp_path.open("w", encoding="utf-8") as f:
            json.dump(record.model_dump(), f, indent=4)
            f.write("\n")
        temp_path.replace(path)
    except OSError as e:
        logger.warning(f"Could not write run record {path}: {e}")
        return None

    logger.debug(f"Run record saved → {path}")
    return path


def load_run_record(backup_root: Path) -> Optional[RunRecord]:
    path = backup_root / RUN_RECORD_FILE
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as f:
        return RunRecord(**json.load(f))
