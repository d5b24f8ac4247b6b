"""Test fixtures and utilities."""

from datetime import datetime, timezone
from typing import Dict, Optional

import pytest

from configguard.core.models import (
    Action,
    HashAlgorithm,
    ObjectMeta,
    ScanPolicy,
    ScanPolicySpec,
    Severity,
    SourceResource,
)
from configguard.core.policy import PolicyResolver
from configguard.core.reconciler import SourceReconciler
from configguard.core.scanner import ScannerRegistry, SecretScanner
from configguard.store.memory import InMemoryStore

NAMESPACE = "secret-detection-system"
SECRET_VALUE = "my-secret"
FIXED_NOW = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external services")


class StubScanner(SecretScanner):
    """Scanner that flags a fixed set of values with fixed severities."""

    def __init__(self, secrets: Optional[Dict[str, Severity]] = None, name: str = "stub"):
        self._name = name
        self.secrets = secrets if secrets is not None else {SECRET_VALUE: Severity.HIGH}

    @property
    def name(self) -> str:
        return self._name

    def is_secret(self, value: str) -> bool:
        return value in self.secrets

    def detect_severity(self, value: str) -> Severity:
        return self.secrets.get(value, Severity.UNKNOWN)


def _make_config_map(name: str = "cm", data: Optional[Dict[str, str]] = None,
                    namespace: str = NAMESPACE) -> SourceResource:
    return SourceResource(
        metadata=ObjectMeta(name=name, namespace=namespace),
        data=dict(data if data is not None else {"password": SECRET_VALUE}),
    )


def _make_policy(name: str = "example-policy", namespace: str = NAMESPACE, **spec) -> ScanPolicy:
    spec.setdefault("scanner", "stub")
    return ScanPolicy(
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec=ScanPolicySpec(**spec),
    )


@pytest.fixture
def stub_scanner():
    """Scanner reporting SECRET_VALUE as a High severity secret."""
    return StubScanner()


@pytest.fixture
def registry(stub_scanner):
    """Registry whose default scanner is the stub."""
    return ScannerRegistry(default="stub").register(stub_scanner)


@pytest.fixture
def store():
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def clock():
    """Deterministic timestamp source."""
    return lambda: FIXED_NOW


@pytest.fixture
def reconciler(store, registry, clock):
    """Reconciler wired to the in-memory store and stub scanner."""
    return SourceReconciler(
        store,
        registry,
        policy_resolver=PolicyResolver(store, registry),
        clock=clock,
    )


@pytest.fixture
def auto_remediate_policy():
    """Policy that moves every Low-or-above secret into a Secret."""
    return _make_policy(
        action=Action.AUTO_REMEDIATE,
        min_severity=Severity.LOW,
        enable_mutation=True,
        hash_algorithm=HashAlgorithm.SHA256,
    )


@pytest.fixture
def manifest_file(tmp_path):
    """Manifest with a ConfigMap holding a secret and an auto-remediating policy."""
    path = tmp_path / "cluster.yaml"
    path.write_text(f"""
apiVersion: v1
kind: ConfigMap
metadata:
  name: app-config
  namespace: {NAMESPACE}
data:
  password: {SECRET_VALUE}
  greeting: hello
---
apiVersion: configguard.io/v1alpha1
kind: ScanPolicy
metadata:
  name: example-policy
  namespace: {NAMESPACE}
spec:
  action: AutoRemediate
  minSeverity: Low
  enableConfigMapMutation: true
  scanner: stub
  hashAlgorithm: sha512
""")
    return path


@pytest.fixture
def make_config_map():
    """Factory for ConfigMaps; defaults to one holding a single secret."""
    return _make_config_map


@pytest.fixture
def make_policy():
    """Factory for ScanPolicies that select the stub scanner."""
    return _make_policy
