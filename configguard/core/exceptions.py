"""Core exceptions for ConfigGuard."""


class ConfigGuardError(Exception):
    """Base exception for all ConfigGuard errors."""

    def __init__(self, message: str, details: dict = None):
        """Initialize the exception."""
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ConfigGuardError):
    """Raised when a policy or the operator configuration is invalid."""

    pass


class InvalidActionError(ConfigurationError):
    """Raised when an action value is outside the known set."""

    def __init__(self, action, source: str = "policy"):
        super().__init__(
            f"{source} action {action!r} is not recognized",
            details={"action": action, "source": source},
        )
        self.action = action
        self.source = source


class UnsupportedHashAlgorithmError(ConfigurationError):
    """Raised when a policy names a hash algorithm we cannot apply."""

    def __init__(self, algorithm):
        super().__init__(
            f"unsupported hashing algorithm {algorithm!r}",
            details={"algorithm": algorithm},
        )
        self.algorithm = algorithm


class ScannerNotFoundError(ConfigurationError):
    """Raised when a policy selects a scanner that is not registered."""

    def __init__(self, name: str, available: list = None):
        super().__init__(
            f"scanner {name!r} is not registered",
            details={"scanner": name, "available": available or []},
        )
        self.name = name


class ValidationError(ConfigGuardError):
    """Raised when data validation fails."""

    pass


class ManifestError(ConfigGuardError):
    """Raised when a manifest file cannot be decoded into objects."""

    pass


class StoreError(ConfigGuardError):
    """Raised when an object store operation fails."""

    retryable = True

    def __init__(self, message: str, kind: str = "", namespace: str = "", name: str = ""):
        super().__init__(
            message,
            details={"kind": kind, "namespace": namespace, "name": name},
        )
        self.kind = kind
        self.namespace = namespace
        self.name = name


class NotFoundError(StoreError):
    """Raised when an object does not exist in the store."""

    retryable = False


class AlreadyExistsError(StoreError):
    """Raised when creating an object whose identity is taken."""

    pass


class ConflictError(StoreError):
    """Raised when an update carries a stale resource version."""

    pass


class RetryableError(ConfigGuardError):
    """Raised when a pass was interrupted and should be scheduled again."""

    retryable = True


class ReconcileTimeoutError(RetryableError):
    """Raised when a pass does not finish before the caller's deadline."""

    def __init__(self, namespace: str, name: str, timeout: float):
        super().__init__(
            f"reconcile of {namespace}/{name} exceeded deadline of {timeout}s",
            details={"namespace": namespace, "name": name, "timeout": timeout},
        )
        self.timeout = timeout



class PartialReconcileError(RetryableError):
    """
    Raised when some keys of a pass failed while the others were reconciled.

    ``result`` is the ReconcileResult of the pass, with the completed
    outcomes and the per-key errors. ``cause`` is the first store error.
    """

    def __init__(self, result, cause: StoreError):
        failed = ", ".join(sorted(result.errors))
        super().__init__(
            f"reconcile of {result.namespace}/{result.name} failed for "
            f"{len(result.errors)} key(s): {failed}",
            details={
                "namespace": result.namespace,
                "name": result.name,
                "errors": dict(result.errors),
            },
        )
        self.result = result
        self.cause = cause
        self.retryable = cause.retryable
