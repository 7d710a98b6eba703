"""Tests for the Ceph CLI client."""

import json
import subprocess

import pytest

from ceph_client import CephClient, retry_on_error
from models import CephCommandError


class FakeRunner:
    """subprocess.run stand-in answering from a queue of results."""

    def __init__(self, *results):
        self.results = list(results)
        self.commands = []

    def __call__(self, cmd, **kwargs):
        self.commands.append(cmd)
        result = self.results.pop(0) if self.results else (0, "", "")
        if isinstance(result, Exception):
            raise result
        returncode, stdout, stderr = result
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr("ceph_client.time.sleep", lambda _: None)


def make_client(*results):
    runner = FakeRunner(*results)
    return CephClient("rook-ceph", config_dir="/var/lib/rook/", runner=runner), runner


class TestRetryOnError:
    """Tests for retry_on_error decorator."""

    def test_retries_then_succeeds(self):
        attempts = []

        @retry_on_error(max_retries=2, delay=0)
        def flaky():
            attempts.append(1)
            if len(attempts) < 2:
                raise CephCommandError("timeout", returncode=110)
            return "ok"

        assert flaky() == "ok"
        assert len(attempts) == 2

    def test_not_found_is_not_retried(self):
        attempts = []

        @retry_on_error(max_retries=3, delay=0)
        def missing():
            attempts.append(1)
            raise CephCommandError("no such pool", returncode=2)

        with pytest.raises(CephCommandError) as exc_info:
            missing()

        assert len(attempts) == 1
        assert exc_info.value.is_not_found

    def test_gives_up_with_last_error(self):
        @retry_on_error(max_retries=1, delay=0)
        def broken():
            raise CephCommandError("connection refused", returncode=1, stderr="refused")

        with pytest.raises(CephCommandError, match="failed after 2 attempts") as exc_info:
            broken()

        assert exc_info.value.returncode == 1
        assert exc_info.value.stderr == "refused"


class TestExecute:
    """Tests for command execution."""

    def test_connection_args(self):
        client, runner = make_client((0, "[]", ""))

        client.list_pools()

        assert runner.commands[0] == [
            "ceph",
            "osd",
            "pool",
            "ls",
            "--format",
            "json",
            "--cluster=rook-ceph",
            "--conf=/var/lib/rook/rook-ceph/rook-ceph.config",
            "--name=client.admin",
            "--keyring=/var/lib/rook/rook-ceph/client.admin.keyring",
        ]

    def test_nonzero_exit(self):
        client, _ = make_client((22, "", "Error EINVAL: bad pool name\n"))

        with pytest.raises(CephCommandError) as exc_info:
            client.ceph("osd", "pool", "create", "bad name")

        assert exc_info.value.returncode == 22
        assert exc_info.value.stderr == "Error EINVAL: bad pool name"

    def test_timeout(self):
        client, _ = make_client(subprocess.TimeoutExpired(["ceph"], 60))

        with pytest.raises(CephCommandError, match="timed out"):
            client.ceph("status")


class TestPools:
    """Tests for pool operations."""

    def test_list_pools(self):
        client, _ = make_client((0, json.dumps([".rgw.root", "my-store.rgw.log"]), ""))

        assert client.list_pools() == [".rgw.root", "my-store.rgw.log"]

    def test_get_pool_property(self):
        client, _ = make_client((0, json.dumps({"pool": "p", "size": 3}), ""))

        assert client.get_pool_property("p", "size") == "3"

    def test_create_replicated_pool(self):
        client, runner = make_client()

        client.create_replicated_pool("my-store.rgw.log", 3, "host", "ssd")

        assert runner.commands[0][:8] == [
            "ceph", "osd", "crush", "rule", "create-replicated",
            "my-store.rgw.log", "default", "host",
        ]
        assert runner.commands[0][8] == "ssd"
        assert runner.commands[1][1:8] == [
            "osd", "pool", "create", "my-store.rgw.log", "8", "8", "replicated",
        ]
        assert runner.commands[2][1:7] == ["osd", "pool", "set", "my-store.rgw.log", "size", "3"]

    def test_create_erasure_coded_pool(self):
        client, runner = make_client()

        client.create_erasure_coded_pool("data", 4, 2, "host")

        assert "k=4" in runner.commands[0]
        assert "m=2" in runner.commands[0]
        assert runner.commands[1][1:8] == [
            "osd", "pool", "create", "data", "8", "8", "erasure",
        ]
        assert runner.commands[1][8] == "data_ecprofile"
        assert runner.commands[2][1:7] == [
            "osd", "pool", "set", "data", "allow_ec_overwrites", "true",
        ]

    def test_delete_missing_pool(self):
        client, _ = make_client((2, "", "pool does not exist"))

        client.delete_pool("gone")


class TestRealm:
    """Tests for realm, zonegroup and zone operations."""

    def test_get_missing_realm(self):
        client, _ = make_client((2, "", "failed to read realm: (2) No such file"))

        assert client.get_realm("my-store") is None

    def test_get_realm(self):
        client, runner = make_client((0, json.dumps({"id": "r1", "name": "my-store"}), ""))

        assert client.get_realm("my-store") == {"id": "r1", "name": "my-store"}
        assert runner.commands[0][:4] == ["radosgw-admin", "realm", "get", "--rgw-realm=my-store"]

    def test_create_zone(self):
        client, runner = make_client()

        client.create_zone("z", "zg", "r", ["http://10.0.0.1:80"])

        assert "--master" in runner.commands[0]
        assert "--endpoints=http://10.0.0.1:80" in runner.commands[0]

    def test_delete_missing_zone(self):
        client, _ = make_client((2, "", ""))

        client.delete_zone("z", "zg", "r")


class TestAuth:
    """Tests for auth operations."""

    def test_get_or_create_key(self):
        client, runner = make_client((0, json.dumps({"key": "AQBsecret=="}), ""))

        key = client.get_or_create_key("client.rgw.my-store", {"mon": "allow rw"})

        assert key == "AQBsecret=="
        assert runner.commands[0][1:6] == [
            "auth", "get-or-create-key", "client.rgw.my-store", "mon", "allow rw",
        ]

    def test_missing_key(self):
        client, _ = make_client(*[(0, "{}", "")] * 4)

        with pytest.raises(CephCommandError):
            client.get_or_create_key("client.rgw.my-store", {})

    def test_delete_missing_key(self):
        client, _ = make_client((2, "", ""))

        client.delete_key("client.rgw.my-store")
