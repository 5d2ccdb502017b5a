import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable

from .config import SELECTED_NODE_KEY

log = logging.getLogger("virtual-pod-webhook")


@dataclass(frozen=True)
class Claim:
    namespace: str
    name: str
    annotations: dict[str, str] = field(default_factory=dict)


class ClaimLookup:
    def lookup(self, namespace: str, name: str) -> Claim | None:
        """
        Return the cached claim, or None if it is unknown.
        """
        raise NotImplementedError


class ClaimCache(ClaimLookup):
    """Local snapshot of PersistentVolumeClaims, refreshed by sync()."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claims: dict[tuple[str, str], Claim] = {}

    def replace(self, claims: Iterable[Claim]) -> None:
        snapshot = {(c.namespace, c.name): c for c in claims}
        with self._lock:
            self._claims = snapshot

    def lookup(self, namespace: str, name: str) -> Claim | None:
        with self._lock:
            return self._claims.get((namespace, name))

    def __len__(self) -> int:
        with self._lock:
            return len(self._claims)

    def sync(self, core: Any, settings: Any) -> int:
        """List claims in all namespaces and swap them in as the new snapshot."""
        items = core.list_persistent_volume_claim_for_all_namespaces(
            _request_timeout=getattr(settings, "webhook_timeout_seconds", 5),
        ).items
        claims = []
        for pvc in items:
            meta = pvc.metadata
            if meta is None or not meta.name:
                continue
            claims.append(
                Claim(
                    namespace=meta.namespace or "",
                    name=meta.name,
                    annotations=dict(meta.annotations or {}),
                )
            )
        self.replace(claims)
        log.debug("Synced %d persistent volume claims", len(claims))
        return len(claims)


def node_name_from_claim(claims: ClaimLookup | None, namespace: str, name: str) -> str:
    if claims is None or not name:
        return ""
    try:
        claim = claims.lookup(namespace, name)
    except Exception as e:
        log.warning("Claim lookup failed for %s/%s: %s", namespace, name, e)
        return ""
    if claim is None or not claim.annotations:
        return ""
    return claim.annotations.get(SELECTED_NODE_KEY, "") or ""


def try_set_node_name(pod: dict[str, Any], namespace: str, claims: ClaimLookup | None) -> str:
    """Pin the pod to the node its first bound claim already lives on."""
    spec = pod.get("spec")
    if not isinstance(spec, dict) or not spec.get("volumes"):
        return ""
    for volume in spec["volumes"]:
        source = volume.get("persistentVolumeClaim") if isinstance(volume, dict) else None
        if not isinstance(source, dict):
            continue
        node_name = node_name_from_claim(claims, namespace, source.get("claimName", ""))
        if node_name:
            spec["nodeName"] = node_name
            log.info("Set desired node name to %s", node_name)
            return node_name
    return ""
