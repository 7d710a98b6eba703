"""Ceph version model and compatibility checks."""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+)\.(\d+)\.(\d+)(?:-(\d+))?")
_IMAGE_TAG_RE = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:-(\d+))?")

_RELEASE_NAMES = {
    14: "nautilus",
    15: "octopus",
    16: "pacific",
    17: "quincy",
    18: "reef",
    19: "squid",
}


class IncompatibleVersionError(ValueError):
    """The local and external Ceph versions cannot work together."""


@dataclass(frozen=True, order=True)
class CephVersion:
    """A Ceph release version, ordered by (major, minor, extra, build)."""

    major: int
    minor: int = 0
    extra: int = 0
    build: int = 0

    def __str__(self) -> str:
        version = f"{self.major}.{self.minor}.{self.extra}"
        if self.build:
            version += f"-{self.build}"
        return version

    @property
    def release_name(self) -> str:
        return _RELEASE_NAMES.get(self.major, "unknown")

    @classmethod
    def parse(cls, text: str) -> "CephVersion":
        """Parse a version out of `ceph --version` output or a version label.

        Accepts e.g. "15.2.4", "15.2.4-0" and
        "ceph version 15.2.4 (7447c15c) octopus (stable)".
        """
        match = _VERSION_RE.search(text or "")
        if not match:
            raise ValueError(f"failed to parse ceph version from {text!r}")
        major, minor, extra, build = match.groups()
        return cls(int(major), int(minor), int(extra), int(build or 0))

    @classmethod
    def from_image(cls, image: str) -> "CephVersion":
        """Parse the version carried by a container image tag.

        Example: 'quay.io/ceph/ceph:v15.2.4-20200630' -> 15.2.4
        """
        name = (image or "").rsplit("/", 1)[-1]
        if ":" not in name:
            raise ValueError(f"image {image!r} has no version tag")
        tag = name.split(":", 1)[1]
        match = _IMAGE_TAG_RE.match(tag)
        if not match:
            raise ValueError(f"failed to parse ceph version from image tag {tag!r}")
        major, minor, extra, _ = match.groups()
        return cls(int(major), int(minor or 0), int(extra or 0))


# Oldest external cluster release this operator will drive
MINIMUM_VERSION = CephVersion(14, 2, 0)


def validate_external_version(
    local: CephVersion,
    external: CephVersion,
    allow_unsupported: bool = False,
) -> None:
    """Check that a local operator can drive an external cluster.

    A major version mismatch, or a local version newer than the external one,
    raises IncompatibleVersionError. An external cluster that is a minor
    version ahead is tolerated with a warning.
    """
    if external < MINIMUM_VERSION and not allow_unsupported:
        raise IncompatibleVersionError(
            f"external cluster ceph version {external} is not supported, "
            f"minimum is {MINIMUM_VERSION} ({MINIMUM_VERSION.release_name})"
        )

    if local == external:
        return

    if local.major != external.major:
        raise IncompatibleVersionError(
            f"external cluster ceph version {external} ({external.release_name}) "
            f"does not match the local major version {local} ({local.release_name})"
        )

    if local > external:
        raise IncompatibleVersionError(
            f"local ceph version {local} is higher than the external cluster "
            f"version {external}"
        )

    logger.warning(
        "External cluster ceph version %s is a minor version higher than the "
        "local version %s, consider upgrading",
        external,
        local,
    )
