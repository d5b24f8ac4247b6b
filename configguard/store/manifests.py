"""YAML manifests <-> model objects."""

import base64
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from configguard.core.exceptions import ManifestError
from configguard.core.models import (
    API_GROUP,
    API_VERSION,
    Action,
    Credential,
    Finding,
    FindingSpec,
    FindingStatus,
    HashAlgorithm,
    ObjectMeta,
    Phase,
    ScanPolicy,
    ScanPolicySpec,
    Severity,
    SourceResource,
    StoreObject,
)
from configguard.core.naming import validate_dns1123_subdomain

logger = logging.getLogger(__name__)

CUSTOM_API_VERSION = f"{API_GROUP}/{API_VERSION}"


def _enum_or_raw(enum_cls, value):
    """Keep unknown values as plain strings so the engine can reject them later."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _value(member) -> Any:
    return member.value if hasattr(member, "value") else member


def _parse_metadata(raw: Dict[str, Any], default_namespace: str, validate: bool = False) -> ObjectMeta:
    name = raw.get("name") or ""
    if not name:
        raise ManifestError("object is missing metadata.name")
    if validate:
        validate_dns1123_subdomain(name)
    return ObjectMeta(
        name=name,
        namespace=raw.get("namespace") or default_namespace,
        resource_version=str(raw.get("resourceVersion") or ""),
        generation=int(raw.get("generation") or 0),
        labels=dict(raw.get("labels") or {}),
        annotations=dict(raw.get("annotations") or {}),
    )


def _dump_metadata(meta: ObjectMeta) -> Dict[str, Any]:
    data: Dict[str, Any] = {"name": meta.name, "namespace": meta.namespace}
    if meta.resource_version:
        data["resourceVersion"] = meta.resource_version
    if meta.generation:
        data["generation"] = meta.generation
    if meta.labels:
        data["labels"] = dict(meta.labels)
    if meta.annotations:
        data["annotations"] = dict(meta.annotations)
    return data


def _data_value(value: Any) -> str:
    """Render a YAML scalar the way it would be written in a ConfigMap."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_config_map(doc: Dict[str, Any], meta: ObjectMeta) -> SourceResource:
    return SourceResource(
        metadata=meta,
        data={str(k): _data_value(v) for k, v in (doc.get("data") or {}).items()},
    )


def _parse_secret(doc: Dict[str, Any], meta: ObjectMeta) -> Credential:
    string_data = {str(k): _data_value(v) for k, v in (doc.get("stringData") or {}).items()}
    for key, encoded in (doc.get("data") or {}).items():
        string_data.setdefault(str(key), base64.b64decode(encoded).decode("utf-8"))
    return Credential(metadata=meta, string_data=string_data)


def _parse_scan_policy(doc: Dict[str, Any], meta: ObjectMeta) -> ScanPolicy:
    return ScanPolicy(metadata=meta, spec=parse_scan_policy_spec(doc.get("spec") or {}))


def parse_scan_policy_spec(spec: Dict[str, Any]) -> ScanPolicySpec:
    """Build a ScanPolicySpec from its manifest form, applying defaults."""
    raw_severity = spec.get("minSeverity") or Severity.MEDIUM
    min_severity = Severity.parse(raw_severity)
    if min_severity is Severity.UNKNOWN and str(raw_severity).strip().lower() != Severity.UNKNOWN.value.lower():
        logger.warning(
            f"Unrecognized minSeverity {raw_severity!r}, treating it as {Severity.UNKNOWN.value}; "
            f"expected one of {[s.value for s in Severity]}"
        )
    return ScanPolicySpec(
        action=_enum_or_raw(Action, spec.get("action") or Action.REPORT_ONLY),
        min_severity=min_severity,
        excluded_keys=[str(k) for k in spec.get("excludedKeys") or []],
        enable_mutation=bool(spec.get("enableConfigMapMutation", False)),
        scanner=str(spec.get("scanner") or ""),
        hash_algorithm=_enum_or_raw(HashAlgorithm, spec.get("hashAlgorithm") or HashAlgorithm.SHA256),
    )


def _parse_finding(doc: Dict[str, Any], meta: ObjectMeta) -> Finding:
    spec = doc.get("spec") or {}
    status = doc.get("status") or {}
    last_update = status.get("lastUpdateTime")
    if isinstance(last_update, str):
        last_update = datetime.fromisoformat(last_update)
    return Finding(
        metadata=meta,
        spec=FindingSpec(
            action=_enum_or_raw(Action, spec.get("action")),
            severity=Severity.parse(spec.get("severity")),
            notes=str(spec.get("notes") or ""),
        ),
        status=FindingStatus(
            source_ref=(status.get("configMapRef") or {}).get("name", ""),
            key=str(status.get("key") or ""),
            scanner=str(status.get("scanner") or ""),
            detected_value_hash=str(status.get("detectedValue") or ""),
            phase=Phase(status.get("phase") or Phase.DETECTED),
            message=str(status.get("message") or ""),
            created_credential_ref=(status.get("createdSecretRef") or {}).get("name"),
            last_update_time=last_update,
            observed_generation=int(status.get("observedGeneration") or 0),
        ),
    )


_PARSERS = {
    SourceResource.KIND: _parse_config_map,
    Credential.KIND: _parse_secret,
    ScanPolicy.KIND: _parse_scan_policy,
    Finding.KIND: _parse_finding,
}

# Kinds whose names are chosen by users rather than derived from source keys.
_VALIDATED_KINDS = {SourceResource.KIND, ScanPolicy.KIND}


def parse_object(doc: Dict[str, Any], default_namespace: str = "default") -> StoreObject:
    """
    Decode one manifest document.

    Raises:
        ManifestError: if the kind is unsupported or the document is malformed
    """
    if not isinstance(doc, dict):
        raise ManifestError(f"manifest document must be a mapping, got {type(doc).__name__}")
    kind = doc.get("kind")
    parser = _PARSERS.get(kind)
    if parser is None:
        raise ManifestError(f"unsupported kind {kind!r}", details={"kind": kind})
    try:
        meta = _parse_metadata(
            doc.get("metadata") or {},
            default_namespace,
            validate=kind in _VALIDATED_KINDS,
        )
        return parser(doc, meta)
    except (TypeError, ValueError) as e:
        raise ManifestError(f"invalid {kind} manifest: {e}", details={"kind": kind}) from e


def load_manifests(
    paths: Iterable[Union[str, Path]],
    default_namespace: str = "default",
) -> List[StoreObject]:
    """Load every object from the given multi-document YAML files."""
    objects: List[StoreObject] = []
    for path in paths:
        try:
            with open(path, "r") as f:
                documents = list(yaml.safe_load_all(f))
        except yaml.YAMLError as e:
            raise ManifestError(f"Failed to parse {path}: {e}") from e

        for doc in documents:
            if doc is None:
                continue
            objects.append(parse_object(doc, default_namespace))
    return objects


def dump_object(obj: StoreObject) -> Dict[str, Any]:
    """Encode an object in its manifest form."""
    if isinstance(obj, SourceResource):
        return {
            "apiVersion": "v1",
            "kind": obj.KIND,
            "metadata": _dump_metadata(obj.metadata),
            "data": dict(obj.data),
        }
    if isinstance(obj, Credential):
        return {
            "apiVersion": "v1",
            "kind": obj.KIND,
            "metadata": _dump_metadata(obj.metadata),
            "type": "Opaque",
            "stringData": dict(obj.string_data),
        }
    if isinstance(obj, ScanPolicy):
        spec = obj.spec
        return {
            "apiVersion": CUSTOM_API_VERSION,
            "kind": obj.KIND,
            "metadata": _dump_metadata(obj.metadata),
            "spec": {
                "action": _value(spec.action),
                "minSeverity": _value(spec.min_severity),
                "excludedKeys": list(spec.excluded_keys),
                "enableConfigMapMutation": spec.enable_mutation,
                "scanner": spec.scanner,
                "hashAlgorithm": _value(spec.hash_algorithm),
            },
        }
    if isinstance(obj, Finding):
        return _dump_finding(obj)
    raise ManifestError(f"cannot encode object of type {type(obj).__name__}")


def _dump_finding(finding: Finding) -> Dict[str, Any]:
    status = finding.status
    data: Dict[str, Any] = {
        "configMapRef": {"name": status.source_ref},
        "key": status.key,
        "scanner": status.scanner,
        "detectedValue": status.detected_value_hash,
        "phase": _value(status.phase),
        "message": status.message,
        "observedGeneration": status.observed_generation,
    }
    if status.created_credential_ref is not None:
        data["createdSecretRef"] = {"name": status.created_credential_ref}
    if status.last_update_time is not None:
        data["lastUpdateTime"] = status.last_update_time.isoformat()

    spec: Dict[str, Optional[str]] = {
        "severity": _value(finding.spec.severity),
        "notes": finding.spec.notes,
    }
    if finding.spec.action is not None:
        spec["action"] = _value(finding.spec.action)

    return {
        "apiVersion": CUSTOM_API_VERSION,
        "kind": finding.KIND,
        "metadata": _dump_metadata(finding.metadata),
        "spec": spec,
        "status": data,
    }


def dump_manifests(objects: Iterable[StoreObject]) -> str:
    """Encode objects as a multi-document YAML string."""
    return yaml.safe_dump_all(
        [dump_object(obj) for obj in objects],
        sort_keys=False,
        default_flow_style=False,
    )
