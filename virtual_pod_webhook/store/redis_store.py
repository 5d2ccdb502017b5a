import time

import redis

from .interface import FrozenNodeStore


class RedisFrozenNodeStore(FrozenNodeStore):
    """Registry shared by all webhook replicas: one hash per owner, node -> last rejection epoch."""

    def __init__(self, url: str, ttl_seconds: int = 0) -> None:
        self._client = redis.Redis.from_url(url)
        self._ttl_seconds = max(0, int(ttl_seconds))

    @staticmethod
    def _key(owner: str) -> str:
        return f"frozen:{owner}"

    def record(self, owner: str, node: str) -> None:
        if not owner or not node:
            return
        key = self._key(owner)
        with self._client.pipeline() as pipe:
            # Every rejection restarts the freeze window for that node
            pipe.hset(key, node, repr(time.time()))
            if self._ttl_seconds:
                pipe.expire(key, self._ttl_seconds)
            pipe.execute()

    def freeze_nodes(self, owner: str) -> set[str]:
        if not owner:
            return set()
        key = self._key(owner)
        raw = self._client.hgetall(key) or {}
        deadline = time.time() - self._ttl_seconds if self._ttl_seconds else None
        nodes = set()
        expired = []
        for node, seen in raw.items():
            if isinstance(node, bytes):
                node = node.decode()
            if deadline is not None:
                try:
                    if float(seen) <= deadline:
                        expired.append(node)
                        continue
                except (TypeError, ValueError):
                    # Unreadable timestamp: keep the node frozen
                    pass
            nodes.add(node)
        if expired:
            self._client.hdel(key, *expired)
        return nodes
