"""Tests for realm, zonegroup and zone management."""

from unittest.mock import MagicMock

import pytest

from resources.realm import delete_realm, ensure_realm

ENDPOINTS = ["http://10.96.0.10:80"]


@pytest.fixture
def ceph():
    client = MagicMock()
    client.get_realm.return_value = {"name": "my-store"}
    client.get_zonegroup.return_value = {"endpoints": ENDPOINTS}
    client.get_zone.return_value = {"endpoints": ENDPOINTS}
    return client


class TestEnsureRealm:
    """Tests for ensure_realm."""

    def test_creates_hierarchy(self, ceph, make_ctx, record):
        ceph.get_realm.return_value = None
        ceph.get_zonegroup.return_value = None
        ceph.get_zone.return_value = None

        assert ensure_realm(ceph, make_ctx(record)) is True

        ceph.create_realm.assert_called_once_with("my-store")
        ceph.create_zonegroup.assert_called_once_with("my-store", "my-store", ENDPOINTS)
        ceph.create_zone.assert_called_once_with("my-store", "my-store", "my-store", ENDPOINTS)
        ceph.commit_period.assert_called_once_with("my-store")

    def test_converged_realm_commits_nothing(self, ceph, make_ctx, record):
        assert ensure_realm(ceph, make_ctx(record)) is False

        ceph.commit_period.assert_not_called()
        ceph.modify_zone_endpoints.assert_not_called()

    def test_endpoint_change_is_committed(self, ceph, make_ctx, record):
        ceph.get_zonegroup.return_value = {"endpoints": ["http://10.96.0.99:80"]}
        ceph.get_zone.return_value = {"endpoints": []}

        ensure_realm(ceph, make_ctx(record))

        ceph.modify_zonegroup_endpoints.assert_called_once_with("my-store", "my-store", ENDPOINTS)
        ceph.modify_zone_endpoints.assert_called_once_with(
            "my-store", "my-store", "my-store", ENDPOINTS
        )
        ceph.commit_period.assert_called_once()

    def test_secure_only_gateway(self, ceph, make_ctx, make_record):
        record = make_record(
            spec={"gateway": {"securePort": 443, "sslCertificateRef": "cert"}}
        )
        ceph.get_zone.return_value = None

        ensure_realm(ceph, make_ctx(record))

        assert ceph.create_zone.call_args.args[3] == ["https://10.96.0.10:443"]


class TestDeleteRealm:
    """Tests for delete_realm."""

    def test_innermost_first(self, ceph, make_ctx, record):
        delete_realm(ceph, make_ctx(record))

        names = [c[0] for c in ceph.method_calls]
        assert names == ["delete_zone", "delete_zonegroup", "delete_realm"]
