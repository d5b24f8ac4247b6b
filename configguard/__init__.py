"""ConfigGuard - Leaked credential detection and remediation for ConfigMaps."""

__version__ = "0.1.0"
__author__ = "ConfigGuard Team"

from configguard.core.models import (
    Action,
    Finding,
    HashAlgorithm,
    Phase,
    ScanPolicy,
    Severity,
)

__all__ = [
    "Action",
    "Finding",
    "HashAlgorithm",
    "Phase",
    "ScanPolicy",
    "Severity",
    "__version__",
]
