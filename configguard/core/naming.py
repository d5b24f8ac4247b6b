"""Object naming helpers."""

import re

from configguard.core.exceptions import ValidationError

# Maximum length of a DNS-1123 subdomain.
MAX_NAME_LENGTH = 253

_DNS1123_SUBDOMAIN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


def finding_name(source_name: str, key: str) -> str:
    """
    Name of the Finding (and credential object) for one source key.

    Two different (source, key) pairs can produce the same name, e.g.
    ``("a-b", "c")`` and ``("a", "b-c")``. Namespacing is the only guard.
    """
    return f"{source_name}-{key}"


def is_dns1123_subdomain(name: str) -> bool:
    return len(name) <= MAX_NAME_LENGTH and bool(_DNS1123_SUBDOMAIN.match(name))


def validate_dns1123_subdomain(name: str) -> None:
    """Raise ValidationError unless name is a valid DNS-1123 subdomain."""
    problems = []
    if len(name) > MAX_NAME_LENGTH:
        problems.append(f"must be no more than {MAX_NAME_LENGTH} characters")
    if not _DNS1123_SUBDOMAIN.match(name):
        problems.append(
            "must consist of lower case alphanumeric characters, '-' or '.', "
            "and must start and end with an alphanumeric character"
        )
    if problems:
        raise ValidationError(
            f"invalid DNS-1123 subdomain {name!r}: {'; '.join(problems)}",
            details={"name": name},
        )


def make_dns1123_subdomain(value: str) -> str:
    """
    Coerce an arbitrary string into a valid DNS-1123 subdomain.

    Characters outside ``[a-z0-9]`` become ``-``, runs of ``-`` collapse and
    leading or trailing ``-`` are dropped. An empty result becomes ``unknown``.
    """
    name = re.sub(r"[^a-z0-9]", "-", value.lower())
    name = re.sub(r"-+", "-", name).strip("-")
    if not name:
        return "unknown"
    return name[:MAX_NAME_LENGTH].rstrip("-")
