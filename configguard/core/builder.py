"""Finding builder."""

import copy
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from configguard.core.models import (
    ANNOTATION_APPLIED_POLICY,
    ANNOTATION_RESOLVED_ACTION,
    Action,
    Finding,
    FindingSpec,
    FindingStatus,
    HashAlgorithm,
    ObjectMeta,
    Phase,
    ScanPolicy,
    Severity,
    SourceResource,
)
from configguard.core.naming import finding_name

DEFAULT_NOTES = "Automatically reported by configguard"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FindingBuilder:
    """
    Accumulates the state of one Finding across a reconciliation pass.

    The plaintext value is held only by the builder. ``build()`` is the
    single place it is hashed, and the returned Finding carries the hash
    alone. Every ``build()`` returns a fresh object, so calling it twice
    with the same inputs yields equal Findings apart from the timestamp.
    """

    def __init__(
        self,
        source: SourceResource,
        key: str,
        value: str,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._value = value
        self._clock = clock
        self._policy: Optional[ScanPolicy] = None
        self._existing: Optional[Finding] = None
        self._generation = source.metadata.generation
        self.finding = Finding(
            metadata=ObjectMeta(
                name=finding_name(source.metadata.name, key),
                namespace=source.metadata.namespace,
            ),
            spec=FindingSpec(action=None, severity=Severity.UNKNOWN, notes=DEFAULT_NOTES),
            status=FindingStatus(
                source_ref=source.metadata.name,
                key=key,
                phase=Phase.DETECTED,
                message=f"Secret detected in ConfigMap {source.metadata.name!r} for key {key!r}",
            ),
        )

    @property
    def name(self) -> str:
        return self.finding.metadata.name

    def with_policy(self, policy: ScanPolicy, scanner_name: str = "") -> "FindingBuilder":
        self._policy = policy
        self.finding.metadata.annotations[ANNOTATION_APPLIED_POLICY] = policy.metadata.name
        self.finding.status.scanner = scanner_name or policy.spec.scanner
        return self

    def with_existing(self, existing: Optional[Finding]) -> "FindingBuilder":
        """Carry over what a prior pass or a user recorded on the Finding."""
        if existing is None:
            return self
        self._existing = existing
        self.finding.metadata.labels = {**existing.metadata.labels, **self.finding.metadata.labels}
        annotations = dict(existing.metadata.annotations)
        annotations.update(self.finding.metadata.annotations)
        self.finding.metadata.annotations = annotations
        self.finding.spec.notes = existing.spec.notes
        self.finding.spec.action = existing.spec.action
        return self

    def has_override(self) -> bool:
        """
        True if the prior Finding carries an action set by a user.

        The engine records the action it wrote from policy in an
        annotation. A set action that differs from that record, or that
        has no record at all, was put there by someone else.
        """
        if self._existing is None or self._existing.spec.action is None:
            return False
        recorded = self._existing.metadata.annotations.get(ANNOTATION_RESOLVED_ACTION)
        return recorded is None or _value(self._existing.spec.action) != recorded

    def existing_action(self) -> Optional[Union[Action, str]]:
        if self._existing is None:
            return None
        return self._existing.spec.action

    def with_severity(self, severity: Severity) -> "FindingBuilder":
        self.finding.spec.severity = severity
        return self

    def with_action(self, action: Action, override: bool = False) -> "FindingBuilder":
        self.finding.spec.action = action
        if override:
            self.finding.metadata.annotations.pop(ANNOTATION_RESOLVED_ACTION, None)
        else:
            self.finding.metadata.annotations[ANNOTATION_RESOLVED_ACTION] = action.value
        return self

    def with_phase(self, phase: Phase) -> "FindingBuilder":
        self.finding.status.phase = phase
        if phase != Phase.REMEDIATED:
            self.finding.status.created_credential_ref = None
        return self

    def with_message(self, message: str) -> "FindingBuilder":
        self.finding.status.message = message
        return self

    def with_remediated(self, credential_name: str) -> "FindingBuilder":
        self.finding.status.phase = Phase.REMEDIATED
        self.finding.status.created_credential_ref = credential_name
        return self

    def build(self) -> Finding:
        algorithm = HashAlgorithm.SHA256
        if self._policy is not None:
            algorithm = HashAlgorithm.parse(self._policy.spec.hash_algorithm)

        finding = copy.deepcopy(self.finding)
        finding.status.detected_value_hash = algorithm.hash(self._value)
        finding.status.last_update_time = self._clock()
        finding.status.observed_generation = self._generation
        return finding


def _value(action: Union[Action, str]) -> str:
    return action.value if isinstance(action, Action) else action
