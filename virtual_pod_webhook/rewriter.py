"""
Scheduling constraint rewrites applied to virtual pods.

Pods work on the raw JSON mapping of the Pod object. Only the required node
affinity terms are examined; preferred terms and pod (anti-)affinity stay as
they are on the live pod.
"""

import copy
import logging
from typing import Any, Iterable

from .config import (
    NODE_NAME_FIELD,
    SELECTOR_KEY,
    TAINT_NODE_NOT_READY,
    TAINT_NODE_UNREACHABLE,
)
from .models import ClusterNodeSelection

log = logging.getLogger("virtual-pod-webhook")

REQUIRED = "requiredDuringSchedulingIgnoredDuringExecution"

# Order matters: missing defaults are appended not-ready first
DESIRED_TOLERATIONS: dict[str, dict[str, str]] = {
    TAINT_NODE_NOT_READY: {
        "key": TAINT_NODE_NOT_READY,
        "operator": "Exists",
        "effect": "NoExecute",
    },
    TAINT_NODE_UNREACHABLE: {
        "key": TAINT_NODE_UNREACHABLE,
        "operator": "Exists",
        "effect": "NoExecute",
    },
}


def skip_inject(spec: dict[str, Any]) -> bool:
    """A pod with no selector, no affinity and no tolerations has nothing to rewrite."""
    return (
        not spec.get("nodeSelector")
        and spec.get("affinity") is None
        and spec.get("tolerations") is None
    )


def inject_node_selector(
    node_selector: dict[str, str], ignore_keys: Iterable[str]
) -> dict[str, str]:
    """
    Remove every key not in ignore_keys from node_selector (in place) and
    return the removed entries.
    """
    ignore = set(ignore_keys)
    final = {}
    for key in list(node_selector):
        if key in ignore:
            continue
        final[key] = node_selector.pop(key)
    return final


def _split(requirements, ignore: set[str]):
    retained, extracted = [], []
    for req in requirements or []:
        if isinstance(req, dict) and req.get("key") in ignore:
            retained.append(req)
        else:
            extracted.append(req)
    return retained, extracted


def _term(expressions, fields) -> dict[str, Any]:
    term: dict[str, Any] = {}
    if expressions:
        term["matchExpressions"] = expressions
    if fields:
        term["matchFields"] = fields
    return term


def inject_affinity(
    affinity: dict[str, Any], ignore_keys: Iterable[str]
) -> dict[str, Any] | None:
    """
    Strip required node affinity requirements whose key is not ignored.

    The live affinity is edited in place: terms keep only ignored keys and
    empty terms are dropped. When no term survives, the required selector is
    removed. Returns an affinity holding the stripped requirements in the
    same term layout, or None when nothing was stripped.
    """
    ignore = set(ignore_keys)
    node_affinity = affinity.get("nodeAffinity")
    if not isinstance(node_affinity, dict):
        return None
    required = node_affinity.get(REQUIRED)
    if not isinstance(required, dict):
        return None

    retained_terms, backup_terms = [], []
    for term in required.get("nodeSelectorTerms") or []:
        live_exprs, backup_exprs = _split(term.get("matchExpressions"), ignore)
        live_fields, backup_fields = _split(term.get("matchFields"), ignore)
        if backup_exprs or backup_fields:
            backup_terms.append(
                _term(copy.deepcopy(backup_exprs), copy.deepcopy(backup_fields))
            )
        if live_exprs or live_fields:
            retained_terms.append(_term(live_exprs, live_fields))

    if retained_terms:
        required["nodeSelectorTerms"] = retained_terms
    else:
        del node_affinity[REQUIRED]

    if not backup_terms:
        return None
    return {"nodeAffinity": {REQUIRED: {"nodeSelectorTerms": backup_terms}}}


def _prune_affinity(spec: dict[str, Any]) -> None:
    # Drop containers emptied by inject_affinity so the patch does not carry {}
    affinity = spec.get("affinity")
    if not isinstance(affinity, dict):
        return
    if affinity.get("nodeAffinity") == {}:
        del affinity["nodeAffinity"]
    if not affinity:
        del spec["affinity"]


def pod_tolerations(tolerations: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """
    Return tolerations with exactly one canonical entry for each of the
    not-ready and unreachable taints. Any caller toleration for those keys is
    replaced by the canonical one; everything else passes through in order.
    """
    seen = set()
    result = []
    for toleration in tolerations or []:
        key = toleration.get("key") if isinstance(toleration, dict) else None
        if key in DESIRED_TOLERATIONS:
            if key not in seen:
                seen.add(key)
                result.append(dict(DESIRED_TOLERATIONS[key]))
            continue
        result.append(toleration)
    for key, default in DESIRED_TOLERATIONS.items():
        if key not in seen:
            result.append(dict(default))
    return result


def inject(pod: dict[str, Any], ignore_keys: Iterable[str]) -> bool:
    """
    Move non-ignored scheduling constraints of pod into the backup annotation
    and normalize its tolerations. Returns False when the pod was left alone.

    An existing backup annotation is kept only when nothing was stripped, so
    an already rewritten pod passes through unchanged. Anything stripped
    replaces it; the live pod no longer carries those constraints.
    """
    spec = pod.get("spec")
    if not isinstance(spec, dict) or skip_inject(spec):
        return False

    ignore = list(ignore_keys)
    affinity = None
    if isinstance(spec.get("affinity"), dict):
        affinity = inject_affinity(spec["affinity"], ignore)
        _prune_affinity(spec)

    node_selector: dict[str, str] = {}
    if spec.get("nodeSelector"):
        node_selector = inject_node_selector(spec["nodeSelector"], ignore)
        if not spec["nodeSelector"]:
            del spec["nodeSelector"]

    selection = ClusterNodeSelection(
        node_selector=node_selector,
        affinity=affinity,
        tolerations=copy.deepcopy(spec.get("tolerations")),
    )
    metadata = pod.setdefault("metadata", {})
    if not isinstance(metadata.get("annotations"), dict):
        metadata["annotations"] = {}
    if SELECTOR_KEY not in metadata["annotations"] or node_selector or affinity:
        metadata["annotations"][SELECTOR_KEY] = selection.to_json()
    else:
        log.debug("Backup constraints already present on pod %s", metadata.get("name"))

    spec["tolerations"] = pod_tolerations(spec.get("tolerations"))
    return True


def exclude_nodes(affinity: dict[str, Any] | None, nodes: list[str]) -> dict[str, Any]:
    """
    Add a `metadata.name NotIn nodes` requirement to the required node affinity.

    Terms are ORed, so the requirement is merged into every existing term;
    an existing NotIn requirement on the node name gets the new nodes appended.
    """
    requirement = {"key": NODE_NAME_FIELD, "operator": "NotIn", "values": list(nodes)}
    if not isinstance(affinity, dict):
        affinity = {}
    if not isinstance(affinity.get("nodeAffinity"), dict):
        affinity["nodeAffinity"] = {}
    node_affinity = affinity["nodeAffinity"]
    required = node_affinity.get(REQUIRED)
    terms = required.get("nodeSelectorTerms") if isinstance(required, dict) else None
    if not terms:
        node_affinity[REQUIRED] = {"nodeSelectorTerms": [{"matchFields": [requirement]}]}
        return affinity

    for term in terms:
        if not isinstance(term.get("matchFields"), list):
            term["matchFields"] = []
        for field in term["matchFields"]:
            if field.get("key") == NODE_NAME_FIELD and field.get("operator") == "NotIn":
                if not isinstance(field.get("values"), list):
                    field["values"] = []
                for node in nodes:
                    if node not in field["values"]:
                        field["values"].append(node)
                break
        else:
            term["matchFields"].append(copy.deepcopy(requirement))
    return affinity
