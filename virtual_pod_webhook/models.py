"""
Minimal models for Kubernetes AdmissionReview and Pod used by this webhook.
We intentionally parse only the fields we need and ignore unknowns so that
new Kubernetes fields don't break this app. The raw pod mapping is kept
alongside the parsed view: mutation works on a copy of it, so fields we do
not model survive in the patch diff.

References:
- AdmissionReview request/response shape:
  https://kubernetes.io/docs/reference/access-authn-authz/extensible-admission-controllers/#request-and-response
- Pod (core/v1) API reference:
  https://kubernetes.io/docs/reference/generated/kubernetes-api/latest/#pod-v1-core
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .config import VIRTUAL_POD_LABEL


class PodParseError(ValueError):
    """Raised when the admitted object cannot be read as a Pod."""


class Operation(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    OTHER = "OTHER"

    @staticmethod
    def parse(value: Any) -> "Operation":
        try:
            op = Operation(str(value).upper())
        except ValueError:
            return Operation.OTHER
        return op


def _get(d: dict[str, Any], key: str, default):
    # Safe nested getter for dicts
    v = d.get(key)
    return v if isinstance(v, type(default)) else default


def owner_uid(raw: dict[str, Any]) -> str:
    # Only the first owner reference is consulted
    refs = _get(_get(raw, "metadata", {}), "ownerReferences", [])
    if refs and isinstance(refs[0], dict):
        return str(refs[0].get("uid") or "")
    return ""


@dataclass
class PodModel:
    name: str
    namespace: str
    labels: dict[str, str] | None
    annotations: dict[str, str]
    owner: str
    node_name: str
    raw: dict[str, Any] = field(repr=False, default_factory=dict)

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "PodModel":
        meta = _get(d, "metadata", {})
        spec = _get(d, "spec", {})
        labels = meta.get("labels")
        return PodModel(
            name=_get(meta, "name", "") or "",
            namespace=_get(meta, "namespace", "") or "",
            # None and {} differ: only a present label map is inspected
            labels=labels if isinstance(labels, dict) else None,
            annotations=_get(meta, "annotations", {}) or {},
            owner=owner_uid(d),
            node_name=_get(spec, "nodeName", "") or "",
            raw=d,
        )

    @staticmethod
    def parse(obj: Any) -> "PodModel":
        if isinstance(obj, (bytes, bytearray, str)):
            try:
                obj = json.loads(obj)
            except ValueError as e:
                raise PodParseError(f"could not decode pod object: {e}") from e
        if not isinstance(obj, dict):
            raise PodParseError(
                f"pod object must be a JSON object, got: {type(obj).__name__}"
            )
        for key in ("metadata", "spec"):
            if key in obj and obj[key] is not None and not isinstance(obj[key], dict):
                raise PodParseError(f"pod {key} must be a JSON object")
        return PodModel.from_dict(obj)


@dataclass
class AdmissionRequestModel:
    uid: str
    kind: str
    obj: Any
    operation: Operation = Operation.OTHER
    namespace: str = ""

    @staticmethod
    def from_dict(d: dict[str, Any]) -> Optional["AdmissionRequestModel"]:
        if not isinstance(d, dict):
            return None
        kind = d.get("kind")
        return AdmissionRequestModel(
            uid=str(d.get("uid", "")),
            kind=str(kind.get("kind", "")) if isinstance(kind, dict) else "",
            obj=d.get("object"),
            operation=Operation.parse(d.get("operation")),
            namespace=str(d.get("namespace", "") or ""),
        )


@dataclass
class AdmissionReviewModel:
    api_version: str
    request: AdmissionRequestModel

    @staticmethod
    def from_dict(d: dict[str, Any]) -> Optional["AdmissionReviewModel"]:
        if not isinstance(d, dict):
            return None
        req_raw = d.get("request")
        req = (
            AdmissionRequestModel.from_dict(req_raw)
            if isinstance(req_raw, dict)
            else None
        )
        if req is None:
            return None
        return AdmissionReviewModel(
            api_version=str(d.get("apiVersion") or "admission.k8s.io/v1"),
            request=req,
        )


@dataclass
class AdmissionResult:
    allowed: bool
    patch: list[dict[str, Any]] | None = None
    message: str | None = None
    code: int | None = None

    @property
    def patch_type(self) -> str | None:
        return "JSONPatch" if self.patch else None


@dataclass
class ClusterNodeSelection:
    """Scheduling constraints stripped from a pod, kept for later restoration."""

    node_selector: dict[str, str] = field(default_factory=dict)
    affinity: dict[str, Any] | None = None
    tolerations: list[dict[str, Any]] | None = None

    def to_json(self) -> str:
        out: dict[str, Any] = {}
        if self.node_selector:
            out["nodeSelector"] = self.node_selector
        if self.affinity:
            out["affinity"] = self.affinity
        if self.tolerations:
            out["tolerations"] = self.tolerations
        return json.dumps(out, separators=(",", ":"), sort_keys=True)

    @staticmethod
    def from_json(raw: str) -> "ClusterNodeSelection":
        d = json.loads(raw)
        return ClusterNodeSelection(
            node_selector=_get(d, "nodeSelector", {}),
            affinity=d.get("affinity") if isinstance(d.get("affinity"), dict) else None,
            tolerations=d.get("tolerations")
            if isinstance(d.get("tolerations"), list)
            else None,
        )


def is_virtual_pod(pod: PodModel) -> bool:
    return (pod.labels or {}).get(VIRTUAL_POD_LABEL) == "true"
