import os
from dataclasses import dataclass

# Keys shared with the virtual-kubelet provider and the descheduler
SELECTOR_KEY = "clusterSelector"
SELECTED_NODE_KEY = "volume.kubernetes.io/selected-node"
VIRTUAL_POD_LABEL = "virtual-pod"
CREATED_BY_DESCHEDULER = "create-by-descheduler"
UNSCHEDULABLE_NODE_KEY = "unschedulable-node"
TAINT_NODE_NOT_READY = "node.kubernetes.io/not-ready"
TAINT_NODE_UNREACHABLE = "node.kubernetes.io/unreachable"
NODE_NAME_FIELD = "metadata.name"


def _get_env(name: str, default: str) -> str:
    val = os.getenv(name)
    return val if val is not None and val != "" else default


def _parse_int(name: str, default: int) -> int:
    val = _get_env(name, str(default))
    try:
        return int(val)
    except Exception:
        return default


def _parse_bool(name: str, default: bool) -> bool:
    val = _get_env(name, "true" if default else "false")
    return val.lower() in ("1", "true", "yes")


def _parse_list(name: str) -> tuple[str, ...]:
    val = _get_env(name, "")
    return tuple(k.strip() for k in val.split(",") if k.strip())


@dataclass(frozen=True)
class Settings:
    # Behavior
    ignore_selector_keys: tuple[str, ...] = ()
    webhook_timeout_seconds: int = 5
    redis_url: str = ""
    freeze_ttl_seconds: int = 0
    app_env: str = "production"
    claim_sync_enabled: bool = True
    claim_sync_interval_seconds: int = 30

    # Listener
    port: int = 8443
    tls_cert_file: str = "tls/tls.crt"
    tls_key_file: str = "tls/tls.key"


def load() -> Settings:
    return Settings(
        ignore_selector_keys=_parse_list("IGNORE_SELECTOR_KEYS"),
        webhook_timeout_seconds=_parse_int("WEBHOOK_TIMEOUT_SECONDS", 5),
        redis_url=_get_env("REDIS_URL", ""),
        freeze_ttl_seconds=max(0, _parse_int("FREEZE_TTL_SECONDS", 0)),
        app_env=_get_env("APP_ENV", "production"),
        claim_sync_enabled=_parse_bool("CLAIM_SYNC_ENABLED", True),
        claim_sync_interval_seconds=_parse_int("CLAIM_SYNC_INTERVAL_SECONDS", 30),
        port=_parse_int("PORT", 8443),
        tls_cert_file=_get_env("TLS_CERT_FILE", "tls/tls.crt"),
        tls_key_file=_get_env("TLS_KEY_FILE", "tls/tls.key"),
    )


# Singleton settings for app usage (optional in tests)
settings: Settings = load()
