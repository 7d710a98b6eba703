"""RADOS pool management for an object store."""

import logging

from ceph_client import CephClient
from models import CephCommandError, PoolSpec, ProvisioningContext

logger = logging.getLogger(__name__)

# Pools holding gateway metadata, created from the metadata pool spec
METADATA_POOL_SUFFIXES = [
    "rgw.control",
    "rgw.meta",
    "rgw.log",
    "rgw.buckets.index",
    "rgw.buckets.non-ec",
]
DATA_POOL_SUFFIX = "rgw.buckets.data"

# Shared by every object store in the cluster, never deleted
ROOT_POOL = ".rgw.root"

RGW_APPLICATION = "rgw"


def metadata_pool_names(store_name: str) -> list[str]:
    return [f"{store_name}.{suffix}" for suffix in METADATA_POOL_SUFFIXES]


def data_pool_name(store_name: str) -> str:
    return f"{store_name}.{DATA_POOL_SUFFIX}"


def desired_pools(ctx: ProvisioningContext) -> list[tuple[str, PoolSpec]]:
    """All pools of the store paired with the spec they follow."""
    spec = ctx.record.spec
    pools = [(name, spec.metadata_pool) for name in metadata_pool_names(ctx.name)]
    pools.append((ROOT_POOL, spec.metadata_pool))
    pools.append((data_pool_name(ctx.name), spec.data_pool))
    return pools


def _get_property(client: CephClient, pool: str, prop: str) -> str:
    """Read a pool property; an unset property reads as empty."""
    try:
        return client.get_pool_property(pool, prop)
    except CephCommandError as e:
        if e.is_not_found:
            return ""
        raise


def _create_pool(client: CephClient, name: str, spec: PoolSpec) -> None:
    if spec.is_erasure_coded:
        client.create_erasure_coded_pool(
            name,
            spec.erasure_coded.data_chunks,
            spec.erasure_coded.coding_chunks,
            spec.failure_domain,
            spec.device_class,
        )
    else:
        client.create_replicated_pool(
            name, spec.replicated_size, spec.failure_domain, spec.device_class
        )
    client.enable_application(name, RGW_APPLICATION)


def _desired_properties(spec: PoolSpec) -> dict[str, str]:
    properties = dict(spec.parameters)
    if spec.compression_mode:
        properties["compression_mode"] = spec.compression_mode
    if not spec.is_erasure_coded:
        properties["size"] = str(spec.replicated_size)
    return properties


def ensure_pool(
    client: CephClient,
    name: str,
    spec: PoolSpec,
    existing: set[str],
) -> bool:
    """Ensure one pool exists and its tunable properties match the spec.

    Erasure coding profiles cannot change after creation, so an existing
    erasure coded pool only has its properties reconciled.

    Returns:
        True if the pool was created.
    """
    created = False
    if name not in existing:
        _create_pool(client, name, spec)
        existing.add(name)
        created = True

    for prop, value in _desired_properties(spec).items():
        if _get_property(client, name, prop) != value:
            logger.info("Pool %s drifted on %s, setting it to %s", name, prop, value)
            client.set_pool_property(name, prop, value)

    return created


def ensure_pools(client: CephClient, ctx: ProvisioningContext) -> list[str]:
    """Ensure the metadata and data pools of the store exist.

    Returns:
        Names of the pools created by this call.
    """
    existing = set(client.list_pools())
    created = []
    for name, spec in desired_pools(ctx):
        if ensure_pool(client, name, spec, existing):
            created.append(name)

    if created:
        ctx.log.info("created pools %s", ", ".join(created))
    else:
        ctx.log.debug("all pools already exist")
    return created


def delete_pools(client: CephClient, ctx: ProvisioningContext) -> None:
    """Delete the store's pools unless the spec asks to preserve them."""
    if ctx.record.spec.preserve_pools_on_delete:
        ctx.log.info("preserving pools of object store %s", ctx.name)
        return

    existing = set(client.list_pools())
    for name in [*metadata_pool_names(ctx.name), data_pool_name(ctx.name)]:
        if name in existing:
            client.delete_pool(name)
    ctx.log.info("deleted pools of object store %s", ctx.name)
