"""Core package for ConfigGuard."""

from configguard.core.builder import FindingBuilder
from configguard.core.exceptions import ConfigGuardError, ConfigurationError, StoreError
from configguard.core.models import Action, Finding, Phase, ScanPolicy, Severity
from configguard.core.policy import PolicyResolver, PolicyRuleset
from configguard.core.reconciler import ReconcileResult, SourceReconciler, reconcile_with_deadline
from configguard.core.resolver import ActionResolver, ResolvedAction
from configguard.core.scanner import DetectSecretsScanner, ScannerRegistry, SecretScanner
from configguard.core.upsert import create_or_update

__all__ = [
    "Action",
    "ActionResolver",
    "ConfigGuardError",
    "ConfigurationError",
    "DetectSecretsScanner",
    "Finding",
    "FindingBuilder",
    "Phase",
    "PolicyResolver",
    "PolicyRuleset",
    "ReconcileResult",
    "ResolvedAction",
    "ScanPolicy",
    "ScannerRegistry",
    "SecretScanner",
    "Severity",
    "SourceReconciler",
    "StoreError",
    "create_or_update",
    "reconcile_with_deadline",
]
