from .orchestrator import BackupOrchestrator

__all__ = ["BackupOrchestrator"]
