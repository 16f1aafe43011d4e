from .outcome import (
    BackupRunResult,
    OutcomeLedger,
    OutcomeStatus,
    RepositoryOutcome,
    VerificationResult,
    VerificationStatus,
)

__all__ = [
    "BackupRunResult",
    "OutcomeLedger",
    "OutcomeStatus",
    "RepositoryOutcome",
    "VerificationResult",
    "VerificationStatus",
]
