"""Ceph CLI wrapper with retry logic.

The operator talks to the prerequisite cluster the same way an administrator
would: through the `ceph` and `radosgw-admin` binaries shipped in the operator
image, pointed at the cluster's config and admin keyring.
"""

import json
import logging
import subprocess
import time
from collections.abc import Callable, Sequence
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from metrics import CEPH_COMMANDS, CEPH_COMMAND_DURATION
from models import CephCommandError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

Runner = Callable[..., subprocess.CompletedProcess]


def _is_transient(error: CephCommandError) -> bool:
    """ENOENT is an answer, not a failure worth retrying."""
    return not error.is_not_found


def retry_on_error(
    max_retries: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator to retry ceph commands on transient errors."""

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception: CephCommandError | None = None
            current_delay = delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except CephCommandError as e:
                    if not _is_transient(e):
                        raise
                    last_exception = e
                    if attempt < max_retries:
                        logger.warning(
                            "Attempt %d/%d failed for %s: %s. Retrying in %.1fs...",
                            attempt + 1,
                            max_retries + 1,
                            func.__name__,
                            e,
                            current_delay,
                        )
                        time.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.error(
                            "All %d attempts failed for %s",
                            max_retries + 1,
                            func.__name__,
                        )

            if last_exception is not None:
                raise CephCommandError(
                    f"Operation {func.__name__} failed after {max_retries + 1} "
                    f"attempts: {last_exception}",
                    returncode=last_exception.returncode,
                    stderr=last_exception.stderr,
                ) from last_exception
            raise CephCommandError(f"Operation {func.__name__} failed unexpectedly")

        return wrapper

    return decorator


class CephClient:
    """Runs ceph and radosgw-admin commands against one cluster."""

    def __init__(
        self,
        cluster_name: str,
        config_dir: str = "/var/lib/rook",
        timeout: float = 60.0,
        runner: Runner = subprocess.run,
    ) -> None:
        """Initialize the client.

        Args:
            cluster_name: Ceph cluster name (the CephCluster namespace)
            config_dir: Directory holding <cluster>/<cluster>.config
            timeout: Seconds before a single command is abandoned
            runner: subprocess.run compatible callable
        """
        self.cluster_name = cluster_name
        self.config_dir = config_dir.rstrip("/")
        self.timeout = timeout
        self._runner = runner

    def _connection_args(self) -> list[str]:
        base = f"{self.config_dir}/{self.cluster_name}"
        return [
            f"--cluster={self.cluster_name}",
            f"--conf={base}/{self.cluster_name}.config",
            "--name=client.admin",
            f"--keyring={base}/client.admin.keyring",
        ]

    def _execute(self, binary: str, args: Sequence[str]) -> str:
        """Run one command and return its stdout."""
        command = " ".join(a for a in args[:2] if not a.startswith("-"))
        cmd = [binary, *args, *self._connection_args()]
        logger.debug("Running %s %s", binary, " ".join(args))

        start = time.monotonic()
        try:
            result = self._runner(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            CEPH_COMMANDS.labels(command=command, status="timeout").inc()
            raise CephCommandError(
                f"{binary} {command} timed out after {self.timeout:.0f}s"
            ) from e
        finally:
            CEPH_COMMAND_DURATION.labels(command=command).observe(
                time.monotonic() - start
            )

        if result.returncode != 0:
            CEPH_COMMANDS.labels(command=command, status="error").inc()
            stderr = (result.stderr or "").strip()
            raise CephCommandError(
                f"{binary} {command} failed with exit code {result.returncode}: {stderr}",
                returncode=result.returncode,
                stderr=stderr,
            )

        CEPH_COMMANDS.labels(command=command, status="success").inc()
        return result.stdout or ""

    def ceph(self, *args: str) -> str:
        return self._execute("ceph", args)

    def ceph_json(self, *args: str) -> Any:
        output = self.ceph(*args, "--format", "json")
        return json.loads(output) if output.strip() else None

    def radosgw_admin(self, *args: str) -> str:
        return self._execute("radosgw-admin", args)

    def _radosgw_admin_get(self, *args: str) -> dict[str, Any] | None:
        """Run a radosgw-admin 'get', returning None when the entity is absent."""
        try:
            output = self.radosgw_admin(*args)
        except CephCommandError as e:
            if e.is_not_found:
                return None
            raise
        return json.loads(output) if output.strip() else {}

    # -------------------------------------------------------------------------
    # Pool operations
    # -------------------------------------------------------------------------

    @retry_on_error()
    def list_pools(self) -> list[str]:
        """List the names of all pools."""
        return list(self.ceph_json("osd", "pool", "ls") or [])

    @retry_on_error()
    def get_pool_property(self, pool: str, prop: str) -> str:
        """Get a single pool property as a string."""
        data = self.ceph_json("osd", "pool", "get", pool, prop) or {}
        return str(data.get(prop, ""))

    @retry_on_error()
    def set_pool_property(self, pool: str, prop: str, value: str) -> None:
        """Set a pool property."""
        logger.info("Setting %s=%s on pool %s", prop, value, pool)
        self.ceph("osd", "pool", "set", pool, prop, str(value), "--yes-i-really-mean-it")

    @retry_on_error()
    def create_replicated_pool(
        self,
        pool: str,
        size: int,
        failure_domain: str,
        device_class: str = "",
    ) -> None:
        """Create a replicated pool with its own crush rule."""
        rule_args = ["osd", "crush", "rule", "create-replicated", pool, "default", failure_domain]
        if device_class:
            rule_args.append(device_class)
        self.ceph(*rule_args)

        logger.info("Creating replicated pool %s (size=%d)", pool, size)
        self.ceph("osd", "pool", "create", pool, "8", "8", "replicated", pool)
        self.ceph("osd", "pool", "set", pool, "size", str(size), "--yes-i-really-mean-it")

    @retry_on_error()
    def create_erasure_coded_pool(
        self,
        pool: str,
        data_chunks: int,
        coding_chunks: int,
        failure_domain: str,
        device_class: str = "",
    ) -> None:
        """Create an erasure coded pool with its own profile."""
        profile = f"{pool}_ecprofile"
        profile_args = [
            "osd",
            "erasure-code-profile",
            "set",
            profile,
            f"k={data_chunks}",
            f"m={coding_chunks}",
            f"crush-failure-domain={failure_domain}",
        ]
        if device_class:
            profile_args.append(f"crush-device-class={device_class}")
        self.ceph(*profile_args, "--force")

        logger.info(
            "Creating erasure coded pool %s (k=%d, m=%d)", pool, data_chunks, coding_chunks
        )
        self.ceph("osd", "pool", "create", pool, "8", "8", "erasure", profile)
        self.ceph("osd", "pool", "set", pool, "allow_ec_overwrites", "true")

    @retry_on_error()
    def enable_application(self, pool: str, application: str) -> None:
        """Tag a pool with the application that uses it."""
        self.ceph(
            "osd", "pool", "application", "enable", pool, application,
            "--yes-i-really-mean-it",
        )

    @retry_on_error()
    def delete_pool(self, pool: str) -> None:
        """Delete a pool; an absent pool is not an error."""
        logger.info("Deleting pool %s", pool)
        try:
            self.ceph("osd", "pool", "delete", pool, pool, "--yes-i-really-really-mean-it")
        except CephCommandError as e:
            if e.is_not_found:
                logger.debug("Pool %s already deleted", pool)
                return
            raise

    # -------------------------------------------------------------------------
    # Realm, zonegroup and zone operations
    # -------------------------------------------------------------------------

    @retry_on_error()
    def get_realm(self, realm: str) -> dict[str, Any] | None:
        return self._radosgw_admin_get("realm", "get", f"--rgw-realm={realm}")

    @retry_on_error()
    def create_realm(self, realm: str) -> None:
        logger.info("Creating realm %s", realm)
        self.radosgw_admin("realm", "create", f"--rgw-realm={realm}")

    @retry_on_error()
    def get_zonegroup(self, zonegroup: str, realm: str) -> dict[str, Any] | None:
        return self._radosgw_admin_get(
            "zonegroup", "get", f"--rgw-zonegroup={zonegroup}", f"--rgw-realm={realm}"
        )

    @retry_on_error()
    def create_zonegroup(self, zonegroup: str, realm: str, endpoints: list[str]) -> None:
        logger.info("Creating zonegroup %s in realm %s", zonegroup, realm)
        self.radosgw_admin(
            "zonegroup",
            "create",
            "--master",
            f"--rgw-zonegroup={zonegroup}",
            f"--rgw-realm={realm}",
            f"--endpoints={','.join(endpoints)}",
        )

    @retry_on_error()
    def modify_zonegroup_endpoints(
        self, zonegroup: str, realm: str, endpoints: list[str]
    ) -> None:
        logger.info("Updating zonegroup %s endpoints to %s", zonegroup, endpoints)
        self.radosgw_admin(
            "zonegroup",
            "modify",
            f"--rgw-zonegroup={zonegroup}",
            f"--rgw-realm={realm}",
            f"--endpoints={','.join(endpoints)}",
        )

    @retry_on_error()
    def get_zone(self, zone: str, zonegroup: str, realm: str) -> dict[str, Any] | None:
        return self._radosgw_admin_get(
            "zone",
            "get",
            f"--rgw-zone={zone}",
            f"--rgw-zonegroup={zonegroup}",
            f"--rgw-realm={realm}",
        )

    @retry_on_error()
    def create_zone(
        self, zone: str, zonegroup: str, realm: str, endpoints: list[str]
    ) -> None:
        logger.info("Creating zone %s in zonegroup %s", zone, zonegroup)
        self.radosgw_admin(
            "zone",
            "create",
            "--master",
            f"--rgw-zone={zone}",
            f"--rgw-zonegroup={zonegroup}",
            f"--rgw-realm={realm}",
            f"--endpoints={','.join(endpoints)}",
        )

    @retry_on_error()
    def modify_zone_endpoints(
        self, zone: str, zonegroup: str, realm: str, endpoints: list[str]
    ) -> None:
        logger.info("Updating zone %s endpoints to %s", zone, endpoints)
        self.radosgw_admin(
            "zone",
            "modify",
            f"--rgw-zone={zone}",
            f"--rgw-zonegroup={zonegroup}",
            f"--rgw-realm={realm}",
            f"--endpoints={','.join(endpoints)}",
        )

    @retry_on_error()
    def commit_period(self, realm: str) -> None:
        logger.info("Committing period for realm %s", realm)
        self.radosgw_admin("period", "update", "--commit", f"--rgw-realm={realm}")

    def _radosgw_admin_delete(self, *args: str) -> None:
        try:
            self.radosgw_admin(*args)
        except CephCommandError as e:
            if e.is_not_found:
                logger.debug("%s already deleted", " ".join(args[:1]))
                return
            raise

    @retry_on_error()
    def delete_zone(self, zone: str, zonegroup: str, realm: str) -> None:
        logger.info("Deleting zone %s", zone)
        self._radosgw_admin_delete(
            "zone",
            "delete",
            f"--rgw-zone={zone}",
            f"--rgw-zonegroup={zonegroup}",
            f"--rgw-realm={realm}",
        )

    @retry_on_error()
    def delete_zonegroup(self, zonegroup: str, realm: str) -> None:
        logger.info("Deleting zonegroup %s", zonegroup)
        self._radosgw_admin_delete(
            "zonegroup", "delete", f"--rgw-zonegroup={zonegroup}", f"--rgw-realm={realm}"
        )

    @retry_on_error()
    def delete_realm(self, realm: str) -> None:
        logger.info("Deleting realm %s", realm)
        self._radosgw_admin_delete("realm", "delete", f"--rgw-realm={realm}")

    # -------------------------------------------------------------------------
    # Auth operations
    # -------------------------------------------------------------------------

    @retry_on_error()
    def get_or_create_key(self, entity: str, caps: dict[str, str]) -> str:
        """Return the cephx key of an entity, creating it with caps if needed."""
        args = ["auth", "get-or-create-key", entity]
        for service, cap in caps.items():
            args.extend([service, cap])
        data = self.ceph_json(*args) or {}
        key = data.get("key", "")
        if not key:
            raise CephCommandError(f"no key returned for {entity}")
        return key

    @retry_on_error()
    def delete_key(self, entity: str) -> None:
        """Remove an entity's key; an absent entity is not an error."""
        logger.info("Deleting key of %s", entity)
        try:
            self.ceph("auth", "del", entity)
        except CephCommandError as e:
            if e.is_not_found:
                return
            raise
