"""
Outcome models — what happened to each repository in a run.

The OutcomeLedger is the only state shared between worker threads. Every
read and write goes through its lock; callers get copies, never the live
lists.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class VerificationStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    FAILED = "failed"


@dataclass
class RepositoryOutcome:
    """Terminal result of synchronizing one repository."""

    slug: str
    status: OutcomeStatus
    branches_seen: int = 0
    branches_updated: int = 0
    failed_branches: List[str] = field(default_factory=list)
    skipped: bool = False
    dry_run: bool = False
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @classmethod
    def success(cls, slug: str, **kwargs: Any) -> "RepositoryOutcome":
        return cls(slug=slug, status=OutcomeStatus.SUCCESS, **kwargs)

    @classmethod
    def failure(cls, slug: str, error: str, **kwargs: Any) -> "RepositoryOutcome":
        return cls(slug=slug, status=OutcomeStatus.FAILURE, error=error, **kwargs)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @property
    def fully_current(self) -> bool:
        return self.ok and self.branches_updated == self.branches_seen

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class VerificationResult:
    slug: str
    status: VerificationStatus
    message: str = ""
    commit_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "status": self.status.value,
            "message": self.message,
            "commit_count": self.commit_count,
        }


class OutcomeLedger:
    """
    Append-only record of terminal outcomes plus the dispatch counter.

    Safe to call from any worker thread.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._outcomes: Dict[str, RepositoryOutcome] = {}
        self._successful: List[str] = []
        self._failed: List[str] = []
        self._dispatched = 0

    def record(self, outcome: RepositoryOutcome) -> None:
        with self._lock:
            if outcome.slug in self._outcomes:
                raise ValueError(f"Outcome for {outcome.slug} already recorded")
            self._outcomes[outcome.slug] = outcome
            if outcome.ok:
                self._successful.append(outcome.slug)
            else:
                self._failed.append(outcome.slug)

    def mark_dispatched(self) -> int:
        """Count one dispatch; returns the new total."""
        with self._lock:
            self._dispatched += 1
            return self._dispatched

    @property
    def dispatched(self) -> int:
        with self._lock:
            return self._dispatched

    @property
    def successful(self) -> List[str]:
        with self._lock:
            return list(self._successful)

    @property
    def failed(self) -> List[str]:
        with self._lock:
            return list(self._failed)

    def get(self, slug: str) -> Optional[RepositoryOutcome]:
        with self._lock:
            return self._outcomes.get(slug)

    def outcomes(self) -> List[RepositoryOutcome]:
        """All outcomes in the order they were recorded."""
        with self._lock:
            return list(self._outcomes.values())

    def counts(self) -> Tuple[int, int]:
        """(successful, failed)"""
        with self._lock:
            return len(self._successful), len(self._failed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)


@dataclass
class BackupRunResult:
    """Everything the reporter and the run record need after a run."""

    workspace: str
    repositories: List[str]
    ledger: OutcomeLedger
    started_at: datetime
    finished_at: Optional[datetime] = None
    dry_run: bool = False
    verifications: List[VerificationResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.repositories)

    @property
    def successful(self) -> List[str]:
        return self.ledger.successful

    @property
    def failed(self) -> List[str]:
        return self.ledger.failed

    @property
    def exit_code(self) -> int:
        return 1 if self.ledger.failed else 0

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()
