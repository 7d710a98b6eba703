"""Multisite realm, zonegroup and zone of an object store.

Each store is its own realm with a single master zonegroup and zone, all named
after the store. Endpoint changes only become visible to the gateways once a
new period is committed.
"""

from ceph_client import CephClient
from models import ProvisioningContext
from resources.common import gateway_endpoints


def _endpoints_of(entity: dict | None) -> list[str]:
    return sorted((entity or {}).get("endpoints") or [])


def ensure_realm(client: CephClient, ctx: ProvisioningContext) -> bool:
    """Ensure the realm hierarchy exists and advertises the gateway endpoint.

    Returns:
        True if anything changed and a period was committed.
    """
    realm = zonegroup = zone = ctx.name
    endpoints = gateway_endpoints(ctx)
    changed = False

    if client.get_realm(realm) is None:
        client.create_realm(realm)
        changed = True

    existing_zonegroup = client.get_zonegroup(zonegroup, realm)
    if existing_zonegroup is None:
        client.create_zonegroup(zonegroup, realm, endpoints)
        changed = True
    elif _endpoints_of(existing_zonegroup) != sorted(endpoints):
        client.modify_zonegroup_endpoints(zonegroup, realm, endpoints)
        changed = True

    existing_zone = client.get_zone(zone, zonegroup, realm)
    if existing_zone is None:
        client.create_zone(zone, zonegroup, realm, endpoints)
        changed = True
    elif _endpoints_of(existing_zone) != sorted(endpoints):
        client.modify_zone_endpoints(zone, zonegroup, realm, endpoints)
        changed = True

    if changed:
        client.commit_period(realm)
        ctx.log.info("realm %s updated with endpoints %s", realm, ", ".join(endpoints))
    else:
        ctx.log.debug("realm %s already up to date", realm)
    return changed


def delete_realm(client: CephClient, ctx: ProvisioningContext) -> None:
    """Remove zone, zonegroup and realm, innermost first."""
    realm = zonegroup = zone = ctx.name
    client.delete_zone(zone, zonegroup, realm)
    client.delete_zonegroup(zonegroup, realm)
    client.delete_realm(realm)
    ctx.log.info("deleted realm %s", realm)
