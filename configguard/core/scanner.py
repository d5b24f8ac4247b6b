"""Secret scanner interface, registry and the detect-secrets backed default."""

import math
from abc import ABC, abstractmethod
from collections import Counter
from typing import Dict, List, Optional

from detect_secrets.core.scan import scan_line
from detect_secrets.filters.heuristic import (
    is_not_alphanumeric_string,
    is_potential_uuid,
    is_prefixed_with_dollar_sign,
    is_sequential_string,
    is_templated_secret,
)
from detect_secrets.plugins.high_entropy_strings import HighEntropyStringsPlugin
from detect_secrets.settings import default_settings, get_plugins

from configguard.core.exceptions import ScannerNotFoundError
from configguard.core.models import Severity

DEFAULT_SCANNER = "detect-secrets"

# Value-only heuristics from the detect-secrets default filter set.
_HEURISTIC_FILTERS = (
    is_not_alphanumeric_string,
    is_potential_uuid,
    is_prefixed_with_dollar_sign,
    is_sequential_string,
    is_templated_secret,
)


class SecretScanner(ABC):
    """Decides whether a value is secret-like and how severe it is."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name recorded on Findings produced by this scanner."""

    @abstractmethod
    def is_secret(self, value: str) -> bool:
        """Return True if the value looks like a leaked credential."""

    @abstractmethod
    def detect_severity(self, value: str) -> Severity:
        """Return the severity of the value, Unknown if nothing is detected."""


def normalize_scanner_name(name: str) -> str:
    return name.strip().lower()


class ScannerRegistry:
    """
    Name-keyed set of scanners handed to the reconciler.

    Each reconciler owns its registry, so tests substitute scanners by
    building their own instead of patching shared state.
    """

    def __init__(self, default: str = DEFAULT_SCANNER):
        self.default = normalize_scanner_name(default)
        self._scanners: Dict[str, SecretScanner] = {}

    def register(self, scanner: SecretScanner, name: Optional[str] = None) -> "ScannerRegistry":
        self._scanners[normalize_scanner_name(name or scanner.name)] = scanner
        return self

    def get(self, name: Optional[str] = None) -> SecretScanner:
        """
        Look up a scanner by name.

        Args:
            name: Scanner selector from a policy; empty selects the default

        Returns:
            The registered scanner

        Raises:
            ScannerNotFoundError: if nothing is registered under the name
        """
        key = normalize_scanner_name(name) if name else self.default
        try:
            return self._scanners[key]
        except KeyError:
            raise ScannerNotFoundError(name or self.default, available=self.names()) from None

    def names(self) -> List[str]:
        return sorted(self._scanners)

    def __len__(self) -> int:
        return len(self._scanners)


class DetectSecretsScanner(SecretScanner):
    """
    Scanner backed by the detect-secrets plugin set.

    Severity is graded on the Shannon entropy of the strongest match.
    """

    # Entropy thresholds for severity levels
    CRITICAL_THRESHOLD = 4.5
    HIGH_THRESHOLD = 4.0
    MEDIUM_THRESHOLD = 3.5

    @property
    def name(self) -> str:
        return DEFAULT_SCANNER

    def _detect(self, value: str) -> List[str]:
        """
        Return the secrets detect-secrets finds in the value.

        ``scan_line`` is the ad-hoc API and reports every candidate, so the
        entropy plugins' limits and the string heuristics are applied here.
        """
        secrets = []
        with default_settings():
            plugins = {plugin.secret_type: plugin for plugin in get_plugins()}
            for line in value.splitlines() or [value]:
                for potential in scan_line(line):
                    secret = potential.secret_value or line
                    if self._is_real_secret(plugins.get(potential.type), secret):
                        secrets.append(secret)
        return secrets

    @staticmethod
    def _is_real_secret(plugin, secret: str) -> bool:
        if isinstance(plugin, HighEntropyStringsPlugin):
            if plugin.calculate_shannon_entropy(secret) <= plugin.entropy_limit:
                return False
        return not any(is_false_positive(secret) for is_false_positive in _HEURISTIC_FILTERS)

    def is_secret(self, value: str) -> bool:
        if not value:
            return False
        return len(self._detect(value)) > 0

    def detect_severity(self, value: str) -> Severity:
        secrets = self._detect(value) if value else []
        if not secrets:
            return Severity.UNKNOWN

        max_entropy = max(self._calculate_entropy(secret) for secret in secrets)
        if max_entropy > self.CRITICAL_THRESHOLD:
            return Severity.CRITICAL
        if max_entropy > self.HIGH_THRESHOLD:
            return Severity.HIGH
        if max_entropy > self.MEDIUM_THRESHOLD:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def _calculate_entropy(data: str) -> float:
        """Calculate Shannon entropy of a string."""
        if not data:
            return 0.0
        length = len(data)
        return -sum(
            (count / length) * math.log2(count / length)
            for count in Counter(data).values()
        )


def default_registry(default: str = DEFAULT_SCANNER) -> ScannerRegistry:
    """Registry holding the built-in detect-secrets scanner."""
    return ScannerRegistry(default=default).register(DetectSecretsScanner())
