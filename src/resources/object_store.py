"""Provisioner implementation backed by Kubernetes and the Ceph CLIs."""

import logging
from collections.abc import Callable

from kubernetes.client import AppsV1Api, CoreV1Api

from ceph_client import CephClient
from models import ProvisioningContext
from resources import pools, realm, service, workload

logger = logging.getLogger(__name__)

CephClientFactory = Callable[[str], CephClient]


class ObjectStoreProvisioner:
    """Converges and tears down the sub-resources of an object store.

    A CephClient is built per call from the cluster name in the context, so
    stores in different cluster namespaces never share connection settings.
    """

    def __init__(
        self,
        core_api: CoreV1Api,
        apps_api: AppsV1Api,
        ceph_factory: CephClientFactory,
    ) -> None:
        self._core_api = core_api
        self._apps_api = apps_api
        self._ceph_factory = ceph_factory

    def _ceph(self, ctx: ProvisioningContext) -> CephClient:
        return self._ceph_factory(ctx.cluster_info.name)

    def reconcile_endpoint(self, ctx: ProvisioningContext) -> str:
        return service.ensure_service(self._core_api, ctx)

    def reconcile_pools(self, ctx: ProvisioningContext) -> None:
        pools.ensure_pools(self._ceph(ctx), ctx)

    def reconcile_realm(self, ctx: ProvisioningContext) -> None:
        realm.ensure_realm(self._ceph(ctx), ctx)

    def reconcile_workload(self, ctx: ProvisioningContext) -> None:
        workload.ensure_keyring(self._core_api, self._ceph(ctx), ctx)
        workload.ensure_deployment(self._apps_api, ctx)

    def delete_all_sub_resources(self, ctx: ProvisioningContext) -> None:
        """Remove everything the store owns, consumers before what they use."""
        client = self._ceph(ctx)
        workload.delete_deployment(self._apps_api, ctx)
        workload.delete_keyring(self._core_api, client, ctx)
        service.delete_service(self._core_api, ctx)
        realm.delete_realm(client, ctx)
        pools.delete_pools(client, ctx)
        logger.debug("All sub-resources of %s released", ctx.record.key)
