"""Tests for the gateway keyring and Deployment."""

import base64
from unittest.mock import MagicMock

import pytest
from kubernetes.client import (
    ApiClient,
    ApiException,
    V1Container,
    V1Deployment,
    V1DeploymentSpec,
    V1DeploymentStatus,
    V1LabelSelector,
    V1ObjectMeta,
    V1PodSpec,
    V1PodTemplateSpec,
    V1Secret,
)

from models import OperatorError
from resources.workload import (
    CONFIG_HASH_ANNOTATION,
    build_deployment,
    config_hash,
    delete_deployment,
    delete_keyring,
    ensure_deployment,
    ensure_keyring,
    gateway_args,
)

KEYRING = "[client.rgw.my-store]\nkey = AQBsecret==\n"


@pytest.fixture
def core_api():
    return MagicMock()


@pytest.fixture
def apps_api():
    api = MagicMock()
    api.api_client = ApiClient()
    return api


@pytest.fixture
def ceph():
    client = MagicMock()
    client.get_or_create_key.return_value = "AQBsecret=="
    return client


def running_deployment(image, replicas=2, ready=2, digest="stale"):
    return V1Deployment(
        metadata=V1ObjectMeta(
            name="rook-ceph-rgw-my-store", annotations={CONFIG_HASH_ANNOTATION: digest}
        ),
        spec=V1DeploymentSpec(
            replicas=replicas,
            selector=V1LabelSelector(match_labels={}),
            template=V1PodTemplateSpec(
                spec=V1PodSpec(containers=[V1Container(name="rgw", image=image)])
            ),
        ),
        status=V1DeploymentStatus(ready_replicas=ready),
    )


class TestKeyring:
    """Tests for ensure_keyring and delete_keyring."""

    def test_creates_secret(self, core_api, ceph, make_ctx, record):
        core_api.read_namespaced_secret.side_effect = ApiException(status=404)

        ensure_keyring(core_api, ceph, make_ctx(record))

        ceph.get_or_create_key.assert_called_once_with(
            "client.rgw.my-store", {"mon": "allow rw", "osd": "allow rwx"}
        )
        secret = core_api.create_namespaced_secret.call_args.args[1]
        assert secret.metadata.name == "rook-ceph-rgw-my-store-keyring"
        assert secret.string_data == {"keyring": KEYRING}

    def test_matching_secret_is_left_alone(self, core_api, ceph, make_ctx, record):
        core_api.read_namespaced_secret.return_value = V1Secret(
            data={"keyring": base64.b64encode(KEYRING.encode()).decode()}
        )

        ensure_keyring(core_api, ceph, make_ctx(record))

        core_api.patch_namespaced_secret.assert_not_called()

    def test_rotated_key_is_patched(self, core_api, ceph, make_ctx, record):
        core_api.read_namespaced_secret.return_value = V1Secret(data={})

        ensure_keyring(core_api, ceph, make_ctx(record))

        core_api.patch_namespaced_secret.assert_called_once_with(
            "rook-ceph-rgw-my-store-keyring", "rook-ceph", {"stringData": {"keyring": KEYRING}}
        )

    def test_delete(self, core_api, ceph, make_ctx, record):
        core_api.delete_namespaced_secret.side_effect = ApiException(status=404)

        delete_keyring(core_api, ceph, make_ctx(record))

        ceph.delete_key.assert_called_once_with("client.rgw.my-store")


class TestBuildDeployment:
    """Tests for build_deployment."""

    def test_gateway_args(self, make_ctx, record):
        args = gateway_args(make_ctx(record))

        assert "--fsid=fb1d8c0a-7b6e-4a1b-9d3f-2c1e6f0a9b11" in args
        assert "--mon-host=10.0.0.1:6789,10.0.0.2:6789" in args
        assert "--rgw-frontends=beast port=80" in args
        assert "--rgw-zone=my-store" in args
        assert "--rgw-data=/var/lib/ceph/rgw/ceph-my-store" in args

    def test_deployment_shape(self, make_ctx, make_record):
        record = make_record(
            spec={
                "metadataPool": {"replicated": {"size": 3}},
                "dataPool": {"replicated": {"size": 3}},
                "gateway": {
                    "port": 80,
                    "securePort": 443,
                    "sslCertificateRef": "rgw-cert",
                    "instances": 3,
                    "annotations": {"example.com/scrape": "true"},
                    "resources": {"limits": {"memory": "2Gi"}},
                },
            }
        )

        deployment = build_deployment(make_ctx(record))

        assert deployment.metadata.name == "rook-ceph-rgw-my-store"
        assert deployment.spec.replicas == 3
        assert deployment.spec.selector.match_labels == {
            "app": "rook-ceph-rgw",
            "rook_object_store": "my-store",
        }
        template = deployment.spec.template
        assert template.metadata.annotations == {"example.com/scrape": "true"}
        container = template.spec.containers[0]
        assert container.image == "quay.io/ceph/ceph:v17.2.6"
        assert container.resources.limits == {"memory": "2Gi"}
        assert [p.container_port for p in container.ports] == [80, 443]
        assert any("ssl_port=443" in a for a in container.args)

        volumes = {v.name: v for v in template.spec.volumes}
        assert volumes["rgw-log"].host_path.path == "/var/lib/rook/rook-ceph/log"
        assert volumes["rgw-cert"].secret.secret_name == "rgw-cert"
        assert volumes["rgw-keyring"].secret.secret_name == "rook-ceph-rgw-my-store-keyring"


class TestEnsureDeployment:
    """Tests for ensure_deployment."""

    def test_creates_missing_deployment(self, apps_api, make_ctx, record):
        apps_api.read_namespaced_deployment.side_effect = ApiException(status=404)

        ensure_deployment(apps_api, make_ctx(record))

        deployment = apps_api.create_namespaced_deployment.call_args.args[1]
        assert CONFIG_HASH_ANNOTATION in deployment.metadata.annotations

    def test_unchanged_deployment_is_not_replaced(self, apps_api, make_ctx, record):
        ctx = make_ctx(record)
        digest = config_hash(apps_api, build_deployment(ctx))
        apps_api.read_namespaced_deployment.return_value = running_deployment(
            "quay.io/ceph/ceph:v17.2.6", digest=digest
        )

        ensure_deployment(apps_api, ctx)

        apps_api.replace_namespaced_deployment.assert_not_called()

    def test_changed_deployment_is_replaced(self, apps_api, make_ctx, record):
        apps_api.read_namespaced_deployment.return_value = running_deployment(
            "quay.io/ceph/ceph:v17.2.6"
        )

        ensure_deployment(apps_api, make_ctx(record))

        apps_api.replace_namespaced_deployment.assert_called_once()

    def test_dropped_certificate_is_removed(self, apps_api, make_ctx, make_record, record):
        tls_record = make_record(
            spec={
                "metadataPool": {"replicated": {"size": 3}},
                "dataPool": {"replicated": {"size": 3}},
                "gateway": {"port": 80, "securePort": 443, "sslCertificateRef": "rgw-cert"},
            }
        )
        current = build_deployment(make_ctx(tls_record))
        current.metadata.annotations = {CONFIG_HASH_ANNOTATION: "tls"}
        current.metadata.resource_version = "7"
        current.status = V1DeploymentStatus(ready_replicas=1)
        apps_api.read_namespaced_deployment.return_value = current

        ensure_deployment(apps_api, make_ctx(record))

        name, namespace, body = apps_api.replace_namespaced_deployment.call_args.args
        assert (name, namespace) == ("rook-ceph-rgw-my-store", "rook-ceph")
        assert body.metadata.resource_version == "7"
        pod = body.spec.template.spec
        assert "rgw-cert" not in [v.name for v in pod.volumes]
        assert [p.container_port for p in pod.containers[0].ports] == [80]
        assert "rgw-cert" not in [m.name for m in pod.containers[0].volume_mounts]
        apps_api.patch_namespaced_deployment.assert_not_called()

    def test_upgrade_waits_for_ready_gateway(self, apps_api, make_ctx, record):
        apps_api.read_namespaced_deployment.return_value = running_deployment(
            "quay.io/ceph/ceph:v17.2.5", replicas=2, ready=1
        )

        with pytest.raises(OperatorError, match="not ready for an upgrade"):
            ensure_deployment(apps_api, make_ctx(record))

        apps_api.replace_namespaced_deployment.assert_not_called()

    def test_upgrade_check_can_be_skipped(self, apps_api, make_ctx, record):
        apps_api.read_namespaced_deployment.return_value = running_deployment(
            "quay.io/ceph/ceph:v17.2.5", replicas=2, ready=0
        )

        ensure_deployment(apps_api, make_ctx(record, skip_upgrade_checks=True))

        apps_api.replace_namespaced_deployment.assert_called_once()

    def test_delete(self, apps_api, make_ctx, record):
        apps_api.delete_namespaced_deployment.side_effect = ApiException(status=404)

        delete_deployment(apps_api, make_ctx(record))
