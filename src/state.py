"""Shared operator state - thread-safe singleton for Kubernetes clients and the control loop."""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from ceph_client import CephClient
from config import OperatorConfig
from controller import Reconciler
from dispatcher import Dispatcher
from resources.cluster_query import KubernetesClusterQuery
from resources.object_store import ObjectStoreProvisioner
from resources.record_store import KubernetesRecordStore


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    This class provides thread-safe access to shared operator resources:
    - Operator configuration
    - Kubernetes API clients
    - The reconciler and the dispatcher feeding it

    All handlers should use the global `state` instance rather than
    creating their own clients.
    """

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _config: OperatorConfig | None = field(default=None, repr=False)
    _k8s_core_api: k8s_client.CoreV1Api | None = field(default=None, repr=False)
    _k8s_apps_api: k8s_client.AppsV1Api | None = field(default=None, repr=False)
    _k8s_custom_api: k8s_client.CustomObjectsApi | None = field(default=None, repr=False)
    _k8s_configured: bool = field(default=False, repr=False)
    _reconciler: Reconciler | None = field(default=None, repr=False)
    _dispatcher: Dispatcher | None = field(default=None, repr=False)

    def _ensure_k8s_config(self) -> None:
        """Ensure Kubernetes configuration is loaded (must hold lock)."""
        if not self._k8s_configured:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._k8s_configured = True

    def get_config(self) -> OperatorConfig:
        """Get the operator configuration, read from the environment once."""
        with self._lock:
            if self._config is None:
                self._config = OperatorConfig.from_env()
            return self._config

    def get_k8s_core_api(self) -> k8s_client.CoreV1Api:
        """Get or create the Kubernetes CoreV1Api client (thread-safe)."""
        with self._lock:
            self._ensure_k8s_config()
            if self._k8s_core_api is None:
                self._k8s_core_api = k8s_client.CoreV1Api()
            return self._k8s_core_api

    def get_k8s_apps_api(self) -> k8s_client.AppsV1Api:
        """Get or create the Kubernetes AppsV1Api client (thread-safe)."""
        with self._lock:
            self._ensure_k8s_config()
            if self._k8s_apps_api is None:
                self._k8s_apps_api = k8s_client.AppsV1Api()
            return self._k8s_apps_api

    def get_k8s_custom_api(self) -> k8s_client.CustomObjectsApi:
        """Get or create the Kubernetes CustomObjectsApi client (thread-safe)."""
        with self._lock:
            self._ensure_k8s_config()
            if self._k8s_custom_api is None:
                self._k8s_custom_api = k8s_client.CustomObjectsApi()
            return self._k8s_custom_api

    def _ceph_client(self, cluster_name: str) -> CephClient:
        config = self.get_config()
        return CephClient(
            cluster_name,
            config_dir=config.ceph_config_dir,
            timeout=config.ceph_command_timeout,
        )

    def get_reconciler(self) -> Reconciler:
        """Get or create the reconciler wired to the Kubernetes backends."""
        with self._lock:
            if self._reconciler is None:
                config = self.get_config()
                self._reconciler = Reconciler(
                    KubernetesRecordStore(self.get_k8s_custom_api()),
                    KubernetesClusterQuery(
                        self.get_k8s_custom_api(),
                        self.get_k8s_core_api(),
                        self.get_k8s_apps_api(),
                    ),
                    ObjectStoreProvisioner(
                        self.get_k8s_core_api(),
                        self.get_k8s_apps_api(),
                        self._ceph_client,
                    ),
                    not_ready_requeue=config.cluster_not_ready_requeue,
                )
            return self._reconciler

    def get_dispatcher(self) -> Dispatcher:
        """Get or create the dispatcher feeding the reconciler."""
        with self._lock:
            if self._dispatcher is None:
                config = self.get_config()
                self._dispatcher = Dispatcher(
                    self.get_reconciler().reconcile,
                    max_workers=config.reconcile_workers,
                    backoff_base=config.backoff_seconds,
                    backoff_max=config.backoff_max_seconds,
                )
            return self._dispatcher

    def close(self) -> None:
        """Stop the dispatcher, waiting for in-flight reconciles."""
        with self._lock:
            dispatcher = self._dispatcher
            self._dispatcher = None
        if dispatcher is not None:
            dispatcher.shutdown()


# Global operator state singleton
state = OperatorState()


def get_dispatcher() -> Dispatcher:
    """Get the shared dispatcher."""
    return state.get_dispatcher()
