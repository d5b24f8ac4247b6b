"""Unit tests for the Finding builder."""

import hashlib

import pytest

from configguard.core.builder import DEFAULT_NOTES, FindingBuilder
from configguard.core.models import (
    ANNOTATION_APPLIED_POLICY,
    ANNOTATION_RESOLVED_ACTION,
    Action,
    Finding,
    FindingSpec,
    HashAlgorithm,
    ObjectMeta,
    Phase,
    Severity,
)


@pytest.fixture
def builder(make_config_map, clock):
    source = make_config_map()
    source.metadata.generation = 3
    return FindingBuilder(source, "password", "my-secret", clock=clock)


@pytest.mark.unit
class TestFindingBuilder:
    """Test building Findings."""

    def test_fresh_finding(self, builder, clock):
        """Test the initial state of a Finding for a new key."""
        finding = builder.build()

        assert finding.metadata.name == "cm-password"
        assert finding.metadata.namespace == "secret-detection-system"
        assert finding.spec.action is None
        assert finding.spec.notes == DEFAULT_NOTES
        assert finding.status.source_ref == "cm"
        assert finding.status.key == "password"
        assert finding.status.phase is Phase.DETECTED
        assert finding.status.last_update_time == clock()
        assert finding.status.observed_generation == 3

    def test_build_never_stores_plaintext(self, builder):
        """Test the value is hashed with sha256 when no policy is set."""
        finding = builder.build()

        assert finding.status.detected_value_hash == "sha256:" + hashlib.sha256(b"my-secret").hexdigest()
        assert "my-secret" not in repr(finding)

    def test_policy_hash_algorithm(self, builder, make_policy):
        """Test the policy selects the hash algorithm."""
        finding = builder.with_policy(make_policy(hash_algorithm=HashAlgorithm.SHA512)).build()

        assert finding.status.detected_value_hash.startswith("sha512:")
        assert finding.metadata.annotations[ANNOTATION_APPLIED_POLICY] == "example-policy"
        assert finding.status.scanner == "stub"

    def test_scanner_name_overrides_policy_selector(self, builder, make_policy):
        """Test the resolved scanner name is recorded."""
        finding = builder.with_policy(make_policy(scanner=""), "detect-secrets").build()

        assert finding.status.scanner == "detect-secrets"

    def test_build_returns_independent_objects(self, builder):
        """Test repeated builds do not share state."""
        first = builder.build()
        first.metadata.labels["x"] = "y"

        assert builder.build().metadata.labels == {}

    def test_with_existing_carries_user_fields(self, builder):
        """Test notes, labels, annotations and action carry over."""
        existing = Finding(
            metadata=ObjectMeta(
                name="cm-password",
                labels={"team": "payments"},
                annotations={"note": "keep"},
            ),
            spec=FindingSpec(action=Action.IGNORE, notes="known test fixture"),
        )

        finding = builder.with_existing(existing).build()

        assert finding.metadata.labels == {"team": "payments"}
        assert finding.metadata.annotations["note"] == "keep"
        assert finding.spec.notes == "known test fixture"
        assert finding.spec.action is Action.IGNORE

    def test_with_existing_none(self, builder):
        """Test a missing prior Finding changes nothing."""
        assert not builder.with_existing(None).has_override()
        assert builder.existing_action() is None

    def test_remediated_phase(self, builder):
        """Test with_remediated records the credential."""
        finding = builder.with_remediated("cm-password").build()

        assert finding.status.phase is Phase.REMEDIATED
        assert finding.status.created_credential_ref == "cm-password"
        assert finding.is_remediated

    def test_non_remediated_phase_clears_credential(self, builder):
        """Test moving out of Remediated drops the credential reference."""
        builder.with_remediated("cm-password").with_phase(Phase.IGNORED)

        assert builder.build().status.created_credential_ref is None


@pytest.mark.unit
class TestOverrideDetection:
    """Test telling user-set actions from engine-set ones."""

    def _existing(self, action, recorded=None):
        annotations = {}
        if recorded is not None:
            annotations[ANNOTATION_RESOLVED_ACTION] = recorded
        return Finding(
            metadata=ObjectMeta(name="cm-password", annotations=annotations),
            spec=FindingSpec(action=action, severity=Severity.HIGH),
        )

    def test_unset_action_is_not_override(self, builder):
        """Test a Finding without an action has no override."""
        assert not builder.with_existing(self._existing(None)).has_override()

    def test_engine_written_action_is_not_override(self, builder):
        """Test an action matching the engine's record is not an override."""
        existing = self._existing(Action.AUTO_REMEDIATE, recorded="AutoRemediate")

        assert not builder.with_existing(existing).has_override()

    def test_action_without_record_is_override(self, builder):
        """Test an action set by a user on a fresh object is an override."""
        assert builder.with_existing(self._existing(Action.IGNORE)).has_override()

    def test_changed_action_is_override(self, builder):
        """Test a user edit of an engine-written action is an override."""
        existing = self._existing("Ignore", recorded="AutoRemediate")

        assert builder.with_existing(existing).has_override()
        assert builder.existing_action() == "Ignore"

    def test_with_action_records_engine_choice(self, builder):
        """Test engine actions are recorded in the annotation."""
        finding = builder.with_action(Action.REPORT_ONLY).build()

        assert finding.spec.action is Action.REPORT_ONLY
        assert finding.metadata.annotations[ANNOTATION_RESOLVED_ACTION] == "ReportOnly"

    def test_with_action_override_drops_record(self, builder):
        """Test applying an override keeps it detectable on the next pass."""
        builder.with_existing(self._existing(Action.IGNORE, recorded="AutoRemediate"))

        finding = builder.with_action(Action.IGNORE, override=True).build()

        assert ANNOTATION_RESOLVED_ACTION not in finding.metadata.annotations
