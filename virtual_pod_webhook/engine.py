import copy
import logging
from typing import Callable, Iterable

from .claims import ClaimLookup, try_set_node_name
from .config import CREATED_BY_DESCHEDULER, UNSCHEDULABLE_NODE_KEY
from .helpers import create_json_patch
from .models import (
    AdmissionRequestModel,
    AdmissionResult,
    Operation,
    PodModel,
    PodParseError,
    is_virtual_pod,
)
from .rewriter import exclude_nodes, inject
from .store.interface import FrozenNodeStore

log = logging.getLogger("virtual-pod-webhook")


def should_skip(pod: PodModel) -> bool:
    """Pods outside the virtual overlay pass through untouched."""
    if pod.namespace == "kube-system":
        return True
    if pod.labels is not None:
        if pod.labels.get(CREATED_BY_DESCHEDULER) == "true":
            return True
        if not is_virtual_pod(pod):
            return True
    return False


class MutationEngine:
    def __init__(
        self,
        registry: FrozenNodeStore,
        claims: ClaimLookup | None = None,
        ignore_keys: Iterable[str] = (),
    ) -> None:
        self._registry = registry
        self._claims = claims
        self._ignore_keys = tuple(ignore_keys)
        self._handlers: dict[Operation, Callable[[PodModel], AdmissionResult]] = {
            Operation.CREATE: self._on_create,
            Operation.UPDATE: self._on_update,
            Operation.OTHER: self._on_other,
        }

    def mutate(self, req: AdmissionRequestModel) -> AdmissionResult:
        if req.kind != "Pod":
            log.warning("Unsupported kind %r for request %s", req.kind, req.uid)
            return AdmissionResult(allowed=False)

        try:
            pod = PodModel.parse(req.obj)
        except PodParseError as e:
            log.error("Could not parse pod for request %s: %s", req.uid, e)
            return AdmissionResult(allowed=False, message=str(e))

        if not pod.namespace:
            # Generated names are admitted before metadata.namespace is defaulted
            pod.namespace = req.namespace

        if should_skip(pod):
            log.debug("Skip pod %s/%s", pod.namespace, pod.name)
            return AdmissionResult(allowed=True)

        return self._handlers[req.operation](pod)

    def _on_update(self, pod: PodModel) -> AdmissionResult:
        node = pod.annotations.get(UNSCHEDULABLE_NODE_KEY, "")
        if pod.owner and node:
            log.info("Unschedulable node %s for owner %s recorded", node, pod.owner)
            try:
                self._registry.record(pod.owner, node)
            except Exception as e:
                log.error("Could not record node %s for owner %s: %s", node, pod.owner, e)
        return AdmissionResult(allowed=True)

    def _on_other(self, pod: PodModel) -> AdmissionResult:
        log.warning("Skip operation for pod %s/%s", pod.namespace, pod.name)
        return AdmissionResult(allowed=True)

    def _on_create(self, pod: PodModel) -> AdmissionResult:
        clone = copy.deepcopy(pod.raw)

        nodes = self.frozen_nodes(pod)
        if nodes:
            log.info("Create pod %s not in nodes %s", pod.name, nodes)
            if not isinstance(clone.get("spec"), dict):
                clone["spec"] = {}
            spec = clone["spec"]
            spec["affinity"] = exclude_nodes(spec.get("affinity"), nodes)

        try_set_node_name(clone, pod.namespace, self._claims)
        inject(clone, self._ignore_keys)

        try:
            patch = create_json_patch(pod.raw, clone)
        except Exception as e:
            log.error("Could not diff pod %s/%s: %s", pod.namespace, pod.name, e)
            return AdmissionResult(allowed=True, code=403, message=str(e))
        log.info("Final patch for %s/%s: %s", pod.namespace, pod.name, patch)
        return AdmissionResult(allowed=True, patch=patch or None)

    def frozen_nodes(self, pod: PodModel) -> list[str]:
        if not pod.owner or pod.node_name:
            return []
        try:
            nodes = self._registry.freeze_nodes(pod.owner)
        except Exception as e:
            log.error("Could not read frozen nodes for owner %s: %s", pod.owner, e)
            return []
        return sorted(nodes)
