"""
ConfigGuard reconciliation

One pass over one source resource:

1. Resolve the namespace policy and fetch the source (missing source = no-op)
2. Find keys whose values the policy's scanner flags as secret-like
3. For each key not excluded by policy:
   - load the prior Finding to learn whether a user overrode its action
   - grade the severity and resolve the action
   - AutoRemediate: write the credential object, optionally strip the key
     from the source, then mark the Finding Remediated
   - create or update the Finding

Every write is an idempotent upsert, so a pass interrupted at any point
can simply be run again.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from configguard.core.builder import FindingBuilder, utcnow
from configguard.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    PartialReconcileError,
    ReconcileTimeoutError,
    StoreError,
)
from configguard.core.models import (
    ANNOTATION_EXPOSED_SECRET,
    Action,
    Credential,
    Finding,
    ObjectMeta,
    Phase,
    Severity,
    SourceResource,
)
from configguard.core.naming import is_dns1123_subdomain, make_dns1123_subdomain
from configguard.core.policy import PolicyResolver, PolicyRuleset
from configguard.core.resolver import ActionResolver, ResolvedAction
from configguard.core.scanner import ScannerRegistry, SecretScanner
from configguard.core.upsert import create_or_update
from configguard.store.base import ObjectStore

logger = logging.getLogger(__name__)

LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
MANAGED_BY = "configguard"


@dataclass
class KeyOutcome:
    """How one secret-like key was handled."""

    key: str
    finding: str
    action: Action
    phase: Phase
    severity: Severity
    message: str = ""
    credential: Optional[str] = None


@dataclass
class ReconcileResult:
    """Result of one reconciliation pass."""

    namespace: str
    name: str
    policy: str = ""
    source_found: bool = True
    keys_scanned: int = 0
    secret_keys: List[str] = field(default_factory=list)
    excluded_keys: List[str] = field(default_factory=list)
    outcomes: List[KeyOutcome] = field(default_factory=list)
    credentials_written: int = 0
    source_mutated: bool = False
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def findings_written(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> bool:
        return not self.errors


class SourceReconciler:
    """
    Reconciles ConfigMap-shaped source resources against their namespace policy.

    The caller delivers one call per source event and never runs two passes
    for the same source at once. Store errors other than not-found reach the
    caller, which is expected to retry the whole pass.

    Args:
        store: Object store holding sources, policies, Findings and credentials
        registry: Scanners available to policies
        policy_resolver: Policy lookup; defaults to one using the built-in policy
        clock: Timestamp source for Finding status
        fail_fast: Abort the pass on the first failing key instead of
            finishing the other keys and raising PartialReconcileError at the end
    """

    def __init__(
        self,
        store: ObjectStore,
        registry: ScannerRegistry,
        policy_resolver: Optional[PolicyResolver] = None,
        clock: Callable[[], datetime] = utcnow,
        fail_fast: bool = False,
    ):
        self.store = store
        self.registry = registry
        self.policy_resolver = policy_resolver or PolicyResolver(store, registry)
        self.clock = clock
        self.fail_fast = fail_fast

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        logger.info(f"Reconciling ConfigMap {namespace}/{name}")
        ruleset = await self.policy_resolver.resolve(namespace)

        try:
            source = await self.store.get(SourceResource, namespace, name)
        except NotFoundError:
            logger.debug(f"ConfigMap {namespace}/{name} is gone, nothing to do")
            return ReconcileResult(namespace, name, policy=ruleset.name, source_found=False)

        ruleset.validate()
        scanner = ruleset.scanner()
        return await _Pass(self, ruleset, scanner, source).run()


class _Pass:
    """State of a single reconciliation pass over one source resource."""

    def __init__(
        self,
        reconciler: SourceReconciler,
        ruleset: PolicyRuleset,
        scanner: SecretScanner,
        source: SourceResource,
    ):
        self.store = reconciler.store
        self.clock = reconciler.clock
        self.fail_fast = reconciler.fail_fast
        self.ruleset = ruleset
        self.scanner = scanner
        # Working copy; replaced by the stored version after each mutation.
        self.source = source
        self.values = dict(source.data)
        self.namespace = source.metadata.namespace
        self.result = ReconcileResult(
            namespace=self.namespace,
            name=source.metadata.name,
            policy=ruleset.name,
            keys_scanned=len(self.values),
        )

    def find_secret_keys(self) -> List[str]:
        keys = [key for key, value in self.values.items() if self.scanner.is_secret(value)]
        return sorted(keys)

    async def run(self) -> ReconcileResult:
        keys = self.find_secret_keys()
        self.result.secret_keys = keys
        if not keys:
            logger.debug(f"No secret-like keys in ConfigMap {self.result.name!r}")
            return self.result

        first_error: Optional[StoreError] = None
        for key in keys:
            if self.ruleset.is_excluded(key):
                logger.debug(f"Key {key!r} excluded by policy {self.ruleset.name!r}")
                self.result.excluded_keys.append(key)
                continue

            try:
                self.result.outcomes.append(await self.process(key))
            except ConfigurationError:
                raise
            except StoreError as e:
                logger.error(f"Failed to process key {key!r} of ConfigMap {self.result.name!r}: {e}")
                if self.fail_fast:
                    raise
                self.result.errors[key] = str(e)
                first_error = first_error or e

        if first_error is not None:
            logger.error(
                f"Reconcile of {self.namespace}/{self.result.name} finished with "
                f"{len(self.result.errors)} failed key(s)"
            )
            raise PartialReconcileError(self.result, first_error) from first_error

        logger.info(
            f"Reconciled ConfigMap {self.namespace}/{self.result.name}: "
            f"{self.result.findings_written} finding(s), "
            f"{self.result.credentials_written} credential(s)"
        )
        return self.result

    async def process(self, key: str) -> KeyOutcome:
        value = self.values[key]
        builder = FindingBuilder(self.source, key, value, clock=self.clock)
        if not is_dns1123_subdomain(builder.name):
            logger.warning(
                f"Finding name {builder.name!r} is not a valid DNS-1123 subdomain "
                f"(closest valid name: {make_dns1123_subdomain(builder.name)!r})"
            )

        existing = await self.load_existing(builder.name)
        severity = self.scanner.detect_severity(value)
        builder.with_policy(self.ruleset.policy, self.scanner.name).with_existing(existing).with_severity(severity)

        override = builder.has_override()
        resolved = self.resolve(builder, override, severity)
        logger.debug(
            f"Resolved key {key!r}: action={resolved.action.value} "
            f"phase={resolved.phase.value} severity={resolved.severity.value} ({resolved.message})"
        )

        builder.with_action(resolved.action, override=override)
        builder.with_message(resolved.message).with_phase(resolved.phase).with_severity(resolved.severity)

        credential = None
        if resolved.action is Action.AUTO_REMEDIATE:
            credential = await self.remediate(builder.name, key, value)
            builder.with_remediated(credential)
            if not override:
                builder.with_message(f"Secret moved to Secret {credential!r}")

        finding = builder.build()
        await create_or_update(self.store, finding)
        logger.debug(f"Created or updated ExposedSecret {finding.metadata.name!r}")

        return KeyOutcome(
            key=key,
            finding=finding.metadata.name,
            action=resolved.action,
            phase=finding.status.phase,
            severity=finding.spec.severity,
            message=finding.status.message,
            credential=credential,
        )

    async def load_existing(self, name: str) -> Optional[Finding]:
        try:
            return await self.store.get(Finding, self.namespace, name)
        except NotFoundError:
            return None

    def resolve(self, builder: FindingBuilder, override: bool, severity: Severity) -> ResolvedAction:
        return ActionResolver(
            has_override=override,
            override_action=builder.existing_action(),
            default_action=self.ruleset.default_action,
            severity=severity,
            min_severity=self.ruleset.min_severity,
        ).resolve()

    async def remediate(self, name: str, key: str, value: str) -> str:
        """Write the credential object and, if allowed, strip the key from the source."""
        credential = Credential(
            metadata=ObjectMeta(
                name=name,
                namespace=self.namespace,
                labels={LABEL_MANAGED_BY: MANAGED_BY},
            ),
            string_data={key: value},
        )
        await create_or_update(self.store, credential)
        self.result.credentials_written += 1
        logger.info(f"Wrote Secret {self.namespace}/{name} for key {key!r}")

        if self.ruleset.enable_mutation:
            await self.mutate_source(name, key)
        return name

    async def mutate_source(self, credential_name: str, key: str) -> None:
        desired = copy.deepcopy(self.source)
        desired.data.pop(key, None)
        desired.metadata.annotations[ANNOTATION_EXPOSED_SECRET] = credential_name
        self.source = await create_or_update(self.store, desired)
        self.result.source_mutated = True
        logger.info(f"Removed key {key!r} from ConfigMap {self.namespace}/{self.result.name}")


async def reconcile_with_deadline(
    reconciler: SourceReconciler,
    namespace: str,
    name: str,
    timeout: Optional[float] = None,
) -> ReconcileResult:
    """
    Run one pass under a caller-supplied deadline.

    A missed deadline raises ReconcileTimeoutError so the caller schedules
    the pass again. Cancelling the calling task still raises
    asyncio.CancelledError.
    """
    if timeout is None:
        return await reconciler.reconcile(namespace, name)
    try:
        return await asyncio.wait_for(reconciler.reconcile(namespace, name), timeout)
    except asyncio.TimeoutError:
        raise ReconcileTimeoutError(namespace, name, timeout) from None
