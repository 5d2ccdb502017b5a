import importlib
import importlib.abc
import importlib.util
import os
from typing import Any

import pytest


def import_config() -> Any:
	spec = importlib.util.spec_from_file_location(
		"virtual_pod_webhook_config",
		os.path.join(os.path.dirname(__file__), "..", "virtual_pod_webhook", "config.py"),
	)
	assert spec and spec.loader
	mod = importlib.util.module_from_spec(spec)
	loader = spec.loader  # type: ignore[assignment]
	assert isinstance(loader, importlib.abc.Loader)
	loader.exec_module(mod)  # type: ignore[arg-type]
	return mod


def test_defaults(monkeypatch: pytest.MonkeyPatch):
	# Clear env to ensure defaults are used
	for k in [
		"IGNORE_SELECTOR_KEYS",
		"WEBHOOK_TIMEOUT_SECONDS",
		"REDIS_URL",
		"FREEZE_TTL_SECONDS",
		"APP_ENV",
		"CLAIM_SYNC_ENABLED",
		"CLAIM_SYNC_INTERVAL_SECONDS",
		"PORT",
	]:
		monkeypatch.delenv(k, raising=False)

	conf = import_config()
	settings = conf.load()
	assert settings.ignore_selector_keys == ()
	assert settings.webhook_timeout_seconds == 5
	assert settings.redis_url == ""
	assert settings.freeze_ttl_seconds == 0
	assert settings.app_env == "production"
	assert settings.claim_sync_enabled is True
	assert settings.claim_sync_interval_seconds == 30
	assert settings.port == 8443


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
	monkeypatch.setenv("IGNORE_SELECTOR_KEYS", "gpu, metadata.name,,kubernetes.io/os")
	monkeypatch.setenv("WEBHOOK_TIMEOUT_SECONDS", "7")
	monkeypatch.setenv("REDIS_URL", "redis://redis:6379/0")
	monkeypatch.setenv("FREEZE_TTL_SECONDS", "180")
	monkeypatch.setenv("CLAIM_SYNC_ENABLED", "no")
	monkeypatch.setenv("CLAIM_SYNC_INTERVAL_SECONDS", "60")

	conf = import_config()
	settings = conf.load()
	assert settings.ignore_selector_keys == ("gpu", "metadata.name", "kubernetes.io/os")
	assert settings.webhook_timeout_seconds == 7
	assert settings.redis_url == "redis://redis:6379/0"
	assert settings.freeze_ttl_seconds == 180
	assert settings.claim_sync_enabled is False
	assert settings.claim_sync_interval_seconds == 60


def test_invalid_values_fallback(monkeypatch: pytest.MonkeyPatch):
	monkeypatch.setenv("WEBHOOK_TIMEOUT_SECONDS", "not-int")
	monkeypatch.setenv("FREEZE_TTL_SECONDS", "-5")
	monkeypatch.setenv("CLAIM_SYNC_INTERVAL_SECONDS", "soon")

	conf = import_config()
	settings = conf.load()
	assert settings.webhook_timeout_seconds == 5
	assert settings.freeze_ttl_seconds == 0
	assert settings.claim_sync_interval_seconds == 30


def test_interop_keys():
	conf = import_config()
	assert conf.SELECTOR_KEY == "clusterSelector"
	assert conf.SELECTED_NODE_KEY == "volume.kubernetes.io/selected-node"
	assert conf.VIRTUAL_POD_LABEL == "virtual-pod"
	assert conf.CREATED_BY_DESCHEDULER == "create-by-descheduler"
	assert conf.UNSCHEDULABLE_NODE_KEY == "unschedulable-node"
	assert conf.TAINT_NODE_NOT_READY == "node.kubernetes.io/not-ready"
	assert conf.TAINT_NODE_UNREACHABLE == "node.kubernetes.io/unreachable"
