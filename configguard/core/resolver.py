"""Action resolution: user override vs severity gate vs policy default."""

from dataclasses import dataclass
from typing import Optional, Union

from configguard.core.models import Action, Phase, Severity

USER_OVERRIDE_MESSAGE = "user override"


@dataclass(frozen=True)
class ResolvedAction:
    """Outcome of combining override, policy and severity for one key."""

    action: Action
    phase: Phase
    severity: Severity
    message: str


@dataclass(frozen=True)
class ActionResolver:
    """
    Combines the inputs that decide how a detected key is handled.

    Precedence, highest first:

    1. A user override on the prior Finding wins unconditionally.
    2. A severity strictly below the policy minimum forces Ignore and
       resets the recorded severity to Unknown.
    3. Otherwise the policy default action applies.

    AutoRemediate resolves to phase Detected; the reconciler upgrades it to
    Remediated once the credential has been written.
    """

    has_override: bool
    override_action: Optional[Union[Action, str]]
    default_action: Union[Action, str]
    severity: Severity
    min_severity: Severity

    def resolve(self) -> ResolvedAction:
        if self.has_override:
            action = Action.parse(self.override_action, source="finding")
            return ResolvedAction(
                action=action,
                phase=Phase.IGNORED if action is Action.IGNORE else Phase.DETECTED,
                severity=self.severity,
                message=USER_OVERRIDE_MESSAGE,
            )

        if self.severity < self.min_severity:
            return ResolvedAction(
                action=Action.IGNORE,
                phase=Phase.IGNORED,
                severity=Severity.UNKNOWN,
                message=(
                    f"Severity {self.severity.value!r} is below the policy "
                    f"minimum {self.min_severity.value!r}"
                ),
            )

        action = Action.parse(self.default_action)
        if action is Action.IGNORE:
            return ResolvedAction(action, Phase.IGNORED, Severity.UNKNOWN, "ignored by policy")
        if action is Action.AUTO_REMEDIATE:
            return ResolvedAction(action, Phase.DETECTED, self.severity, "auto-remediation")
        return ResolvedAction(action, Phase.DETECTED, self.severity, "reported only")
