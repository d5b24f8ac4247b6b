"""Namespace policy resolution."""

import copy
import logging
from typing import Optional, Union

from configguard.core.models import (
    Action,
    HashAlgorithm,
    ObjectMeta,
    ScanPolicy,
    ScanPolicySpec,
    Severity,
)
from configguard.core.scanner import ScannerRegistry, SecretScanner
from configguard.store.base import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_POLICY_NAME = "default"


def default_scan_policy(namespace: str = "") -> ScanPolicy:
    """The policy applied to namespaces that define none."""
    return ScanPolicy(
        metadata=ObjectMeta(name=DEFAULT_POLICY_NAME, namespace=namespace),
        spec=ScanPolicySpec(
            action=Action.REPORT_ONLY,
            min_severity=Severity.MEDIUM,
            scanner="",
            hash_algorithm=HashAlgorithm.SHA256,
        ),
    )


class PolicyRuleset:
    """Decision helpers derived from one ScanPolicy."""

    def __init__(self, policy: ScanPolicy, registry: ScannerRegistry):
        self.policy = policy
        self.registry = registry

    @property
    def name(self) -> str:
        return self.policy.metadata.name

    @property
    def default_action(self) -> Union[Action, str]:
        return self.policy.spec.action

    @property
    def min_severity(self) -> Severity:
        return Severity.parse(self.policy.spec.min_severity)

    @property
    def enable_mutation(self) -> bool:
        return bool(self.policy.spec.enable_mutation)

    @property
    def hash_algorithm(self) -> HashAlgorithm:
        return HashAlgorithm.parse(self.policy.spec.hash_algorithm)

    def effective_action(self, existing: Optional[Union[Action, str]]) -> Action:
        """A set action on the Finding wins; otherwise the policy default."""
        if existing is not None:
            return Action.parse(existing, source="finding")
        return Action.parse(self.default_action)

    def is_below_threshold(self, severity: Severity) -> bool:
        """True if the severity is strictly lower than the policy minimum."""
        return Severity.parse(severity) < self.min_severity

    def is_excluded(self, key: str) -> bool:
        return key in (self.policy.spec.excluded_keys or [])

    def validate(self) -> None:
        """Raise ConfigurationError if the policy action or hash algorithm is unknown."""
        Action.parse(self.default_action)
        HashAlgorithm.parse(self.policy.spec.hash_algorithm)

    def scanner(self) -> SecretScanner:
        return self.registry.get(self.policy.spec.scanner)


class PolicyResolver:
    """
    Selects the effective ScanPolicy for a namespace.

    An empty namespace falls back to the default policy. When several
    policies exist the first one in list order is used; the store decides
    that order, so it is stable but carries no priority meaning.
    """

    def __init__(
        self,
        store: ObjectStore,
        registry: ScannerRegistry,
        default_policy: Optional[ScanPolicy] = None,
    ):
        self.store = store
        self.registry = registry
        self.default_policy = default_policy or default_scan_policy()

    async def resolve(self, namespace: str) -> PolicyRuleset:
        policies = await self.store.list(ScanPolicy, namespace)
        if not policies:
            policy = copy.deepcopy(self.default_policy)
            policy.metadata.namespace = namespace
            logger.debug(f"No ScanPolicy in namespace {namespace!r}, using {policy.metadata.name!r}")
            return PolicyRuleset(policy, self.registry)

        if len(policies) > 1:
            names = ", ".join(p.metadata.name for p in policies)
            logger.warning(
                f"Multiple ScanPolicies in namespace {namespace!r} ({names}); "
                f"using {policies[0].metadata.name!r}"
            )
        return PolicyRuleset(policies[0], self.registry)
