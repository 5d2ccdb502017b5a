"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: MIT-0
"""
import logging
import os
import threading
import time

from flask import Flask
from kubernetes import client, config

from .claims import ClaimCache
from .config import settings
from .engine import MutationEngine
from .routes import create_routes
from .store.memory_store import MemoryFrozenNodeStore
from .store.redis_store import RedisFrozenNodeStore

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(message)s",
)
log = logging.getLogger("virtual-pod-webhook")

# Initialize Kubernetes client; avoid constructing real client in tests
if os.getenv("APP_ENV", getattr(settings, "app_env", "production")) == "test":
    core = None
else:
    config.load_incluster_config()
    core = client.CoreV1Api()

app = Flask(__name__)
claims = ClaimCache()
_claim_sync_thread = None

if getattr(settings, "redis_url", ""):
    registry = RedisFrozenNodeStore(
        settings.redis_url, getattr(settings, "freeze_ttl_seconds", 0)
    )
    log.info("Frozen nodes kept in Redis")
else:
    registry = MemoryFrozenNodeStore(getattr(settings, "freeze_ttl_seconds", 0))
    log.info("REDIS_URL not set; frozen nodes kept in memory")

engine = MutationEngine(registry, claims, settings.ignore_selector_keys)


def _start_claim_sync_worker():
    if core is None:
        return

    if not getattr(settings, "claim_sync_enabled", True):
        log.info("Claim sync worker disabled by config")
        return

    global _claim_sync_thread
    if _claim_sync_thread is not None:
        return

    interval = max(5, int(getattr(settings, "claim_sync_interval_seconds", 30)))

    def _loop():
        while True:
            try:
                claims.sync(core, settings)
            except Exception as e:
                log.warning("Claim sync failed: %s", e)
            finally:
                time.sleep(interval)

    _claim_sync_thread = threading.Thread(
        target=_loop, name="claim-sync-worker", daemon=True
    )
    _claim_sync_thread.start()
    log.info("Claim sync worker started (interval=%ss)", interval)


bp = create_routes(engine)
app.register_blueprint(bp)

# Start sync worker eagerly in non-test envs (compatible with gunicorn)
_start_claim_sync_worker()

if __name__ == "__main__":
    log.info("Starting webhook server...")
    app.run(
        host="0.0.0.0",
        port=settings.port,
        ssl_context=(settings.tls_cert_file, settings.tls_key_file),
    )
