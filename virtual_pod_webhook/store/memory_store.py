import threading
import time

from .interface import FrozenNodeStore


class MemoryFrozenNodeStore(FrozenNodeStore):
    """Process-local registry; each webhook replica keeps its own view."""

    def __init__(self, ttl_seconds: int = 0) -> None:
        self._lock = threading.Lock()
        self._nodes: dict[str, dict[str, float]] = {}
        self._ttl_seconds = max(0, int(ttl_seconds))

    def record(self, owner: str, node: str) -> None:
        if not owner or not node:
            return
        now = time.time()
        with self._lock:
            # Every rejection restarts the freeze window for that node
            self._nodes.setdefault(owner, {})[node] = now
            self._evict(owner, now)

    def freeze_nodes(self, owner: str) -> set[str]:
        with self._lock:
            self._evict(owner, time.time())
            return set(self._nodes.get(owner, {}))

    def __len__(self) -> int:
        with self._lock:
            return sum(len(nodes) for nodes in self._nodes.values())

    def _evict(self, owner: str, now: float) -> None:
        # Caller holds the lock
        if not self._ttl_seconds or owner not in self._nodes:
            return
        deadline = now - self._ttl_seconds
        nodes = {n: seen for n, seen in self._nodes[owner].items() if seen > deadline}
        if nodes:
            self._nodes[owner] = nodes
        else:
            del self._nodes[owner]
