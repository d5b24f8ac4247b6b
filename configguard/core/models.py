"""Core domain models for ConfigGuard."""

import base64
import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from configguard.core.exceptions import InvalidActionError, UnsupportedHashAlgorithmError

API_GROUP = "configguard.io"
API_VERSION = "v1alpha1"

# Annotation recording which ScanPolicy produced a Finding.
ANNOTATION_APPLIED_POLICY = f"{API_GROUP}/applied-policy"
# Annotation recording the action the engine itself wrote into spec.action.
ANNOTATION_RESOLVED_ACTION = f"{API_GROUP}/resolved-action"
# Annotation placed on a mutated source resource naming the credential object.
ANNOTATION_EXPOSED_SECRET = f"{API_GROUP}/exposed-secret"


class Severity(str, Enum):
    """Detected secret severity, ordered from least to most serious."""

    UNKNOWN = "Unknown"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def ordinal(self) -> int:
        """Position on the scale, Unknown=0 through Critical=4."""
        return _SEVERITY_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.ordinal < other.ordinal

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.ordinal <= other.ordinal

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.ordinal > other.ordinal

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.ordinal >= other.ordinal

    @classmethod
    def parse(cls, value: Union["Severity", str, None]) -> "Severity":
        """Parse a severity name; anything unrecognized is Unknown."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.UNKNOWN
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        return cls.UNKNOWN


_SEVERITY_ORDER = list(Severity)


class Action(str, Enum):
    """What to do with a detected secret."""

    REPORT_ONLY = "ReportOnly"
    AUTO_REMEDIATE = "AutoRemediate"
    IGNORE = "Ignore"

    @classmethod
    def parse(cls, value: Union["Action", str], source: str = "policy") -> "Action":
        """Parse an action, raising InvalidActionError for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidActionError(value, source=source) from None


class Phase(str, Enum):
    """Lifecycle state of a Finding."""

    DETECTED = "Detected"
    REMEDIATED = "Remediated"
    IGNORED = "Ignored"


class HashAlgorithm(str, Enum):
    """How a detected value is reduced before it is persisted."""

    NONE = "none"
    SHA256 = "sha256"
    SHA512 = "sha512"

    @classmethod
    def parse(cls, value: Union["HashAlgorithm", str, None]) -> "HashAlgorithm":
        if isinstance(value, cls):
            return value
        if not value:
            return cls.SHA256
        try:
            return cls(str(value).lower())
        except ValueError:
            raise UnsupportedHashAlgorithmError(value) from None

    def hash(self, value: str) -> str:
        """
        Hash a secret value.

        ``none`` is a reversible base64 encoding, not a hash. The other
        algorithms return the hex digest prefixed with the algorithm name.
        """
        data = value.encode("utf-8")
        if self is HashAlgorithm.NONE:
            return base64.b64encode(data).decode("ascii")
        if self is HashAlgorithm.SHA256:
            return "sha256:" + hashlib.sha256(data).hexdigest()
        return "sha512:" + hashlib.sha512(data).hexdigest()


@dataclass
class ObjectMeta:
    """Identity and bookkeeping shared by every stored object."""

    name: str = ""
    namespace: str = ""
    resource_version: str = ""
    generation: int = 0
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class SourceResource:
    """A namespaced key/value configuration object (ConfigMap)."""

    KIND = "ConfigMap"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    data: Dict[str, str] = field(default_factory=dict)


@dataclass
class Credential:
    """Segregated store entry holding a remediated plaintext value (Secret)."""

    KIND = "Secret"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    string_data: Dict[str, str] = field(default_factory=dict)


@dataclass
class ScanPolicySpec:
    """Namespace-wide handling rules for detected secrets."""

    action: Union[Action, str] = Action.REPORT_ONLY
    min_severity: Severity = Severity.MEDIUM
    excluded_keys: List[str] = field(default_factory=list)
    enable_mutation: bool = False
    scanner: str = ""
    hash_algorithm: Union[HashAlgorithm, str] = HashAlgorithm.SHA256


@dataclass
class ScanPolicy:
    """Namespace-scoped scan configuration."""

    KIND = "ScanPolicy"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ScanPolicySpec = field(default_factory=ScanPolicySpec)


@dataclass
class FindingSpec:
    """User intent for a Finding. ``action=None`` means never set."""

    action: Optional[Union[Action, str]] = None
    severity: Severity = Severity.UNKNOWN
    notes: str = ""


@dataclass
class FindingStatus:
    """Observed outcome of the last reconciliation pass."""

    source_ref: str = ""
    key: str = ""
    scanner: str = ""
    detected_value_hash: str = ""
    phase: Phase = Phase.DETECTED
    message: str = ""
    created_credential_ref: Optional[str] = None
    last_update_time: Optional[datetime] = None
    observed_generation: int = 0


@dataclass
class Finding:
    """The persisted record of one secret-like key (ExposedSecret)."""

    KIND = "ExposedSecret"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: FindingSpec = field(default_factory=FindingSpec)
    status: FindingStatus = field(default_factory=FindingStatus)

    @property
    def is_remediated(self) -> bool:
        return self.status.phase == Phase.REMEDIATED


StoreObject = Union[SourceResource, Credential, ScanPolicy, Finding]
