"""Operator configuration loaded from the environment."""

import logging
import os
from dataclasses import dataclass

from constants import CLUSTER_NOT_READY_REQUEUE_SECONDS
from models import ConfigurationError


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class OperatorConfig:
    """Operator settings.

    Configuration via environment variables:
        WATCH_NAMESPACE: Namespace to watch (default: cluster-wide)
        METRICS_PORT: Prometheus metrics port (default: 9090)
        CEPH_CONFIG_DIR: Directory holding <cluster>/<cluster>.config and
            keyrings (default: /var/lib/rook)
        CEPH_COMMAND_TIMEOUT_SECONDS: Timeout for one ceph CLI call (default: 60)
        CLUSTER_NOT_READY_REQUEUE_SECONDS: Requeue delay while the CephCluster
            is not ready (default: 10)
        RECONCILE_WORKERS: Concurrent reconciles across stores (default: 4)
        RECONCILE_BACKOFF_SECONDS: First retry delay after an error (default: 5)
        RECONCILE_BACKOFF_MAX_SECONDS: Retry delay cap (default: 300)
        LOG_LEVEL: Python log level name (default: INFO)
    """

    watch_namespace: str = ""
    metrics_port: int = 9090
    ceph_config_dir: str = "/var/lib/rook"
    ceph_command_timeout: float = 60.0
    cluster_not_ready_requeue: float = CLUSTER_NOT_READY_REQUEUE_SECONDS
    reconcile_workers: int = 4
    backoff_seconds: float = 5.0
    backoff_max_seconds: float = 300.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "OperatorConfig":
        config = cls(
            watch_namespace=os.environ.get("WATCH_NAMESPACE", ""),
            metrics_port=_env_int("METRICS_PORT", 9090),
            ceph_config_dir=os.environ.get("CEPH_CONFIG_DIR", "/var/lib/rook"),
            ceph_command_timeout=_env_float("CEPH_COMMAND_TIMEOUT_SECONDS", 60.0),
            cluster_not_ready_requeue=_env_float(
                "CLUSTER_NOT_READY_REQUEUE_SECONDS", CLUSTER_NOT_READY_REQUEUE_SECONDS
            ),
            reconcile_workers=_env_int("RECONCILE_WORKERS", 4),
            backoff_seconds=_env_float("RECONCILE_BACKOFF_SECONDS", 5.0),
            backoff_max_seconds=_env_float("RECONCILE_BACKOFF_MAX_SECONDS", 300.0),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
        if config.reconcile_workers < 1:
            raise ConfigurationError("RECONCILE_WORKERS must be at least 1")
        if config.ceph_command_timeout <= 0:
            raise ConfigurationError("CEPH_COMMAND_TIMEOUT_SECONDS must be positive")
        if logging.getLevelName(config.log_level) == f"Level {config.log_level}":
            raise ConfigurationError(f"LOG_LEVEL {config.log_level!r} is not a log level")
        return config
