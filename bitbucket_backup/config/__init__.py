"""
Configuration — settings file loading and validation.
"""

from .loader import WorkspaceConfig, load_config
from .validator import ConfigValidator, ValidationReport

__all__ = [
    "WorkspaceConfig",
    "load_config",
    "ConfigValidator",
    "ValidationReport",
]
