"""Kernel features: version, build configuration and SELinux status."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from . import hostdirs, kernelutils
from .base import DiscoveryError, FeatureSource, Features

log = logging.getLogger(__name__)

_FORBIDDEN_RE = re.compile(r"[^-A-Za-z0-9_.]")
_VERSION_RE = re.compile(
    r"^(?P<major>\d+)(\.(?P<minor>\d+))?(\.(?P<revision>\d+))?(-.*)?$", re.ASCII
)


def _default_config_opts() -> list[str]:
    return ["NO_HZ", "NO_HZ_IDLE", "NO_HZ_FULL", "PREEMPT"]


@dataclass
class KernelConfig:
    """Configuration of the kernel source."""

    kconfig_file: str = ""
    config_opts: list[str] = field(default_factory=_default_config_opts)


def sanitize_version(full: str) -> str:
    """Make a kernel release string usable as a label value."""
    return _FORBIDDEN_RE.sub("_", full).strip("-_.")


def _split_version(full: str) -> dict[str, str]:
    version = {"full": full}
    m = _VERSION_RE.match(full)
    if m is not None:
        version.update({key: value or "" for key, value in m.groupdict().items()})
    return version


def parse_version() -> dict[str, str]:
    """Return the running kernel's version and its components.

    Raises OSError if the kernel release cannot be read.
    """
    return _split_version(sanitize_version(kernelutils.get_kernel_version()))


def selinux_enabled() -> bool:
    """Return True if SELinux is enforcing.

    Raises DiscoveryError if the status cannot be read.
    """
    try:
        status = Path(hostdirs.SYSFS_DIR.path("fs/selinux/enforce")).read_bytes()
    except OSError as err:
        raise DiscoveryError(
            "failed to detect the status of selinux, please check if the system "
            "supports selinux and make sure /sys on the host is mounted into the "
            f"container: {err}"
        ) from err
    return status.startswith(b"1")


class KernelSource(FeatureSource):
    """Discovers kernel features."""

    name = "kernel"
    config_type = KernelConfig

    def new_config(self) -> KernelConfig:
        return KernelConfig()

    def discover(self) -> Features:
        features: Features = {}

        try:
            version = parse_version()
        except OSError as err:
            log.error("failed to get kernel version: %s", err)
        else:
            for key, value in version.items():
                features["version." + key] = value

        try:
            kconfig = kernelutils.parse_kconfig(self.config.kconfig_file)
        except DiscoveryError as err:
            log.error("failed to read kconfig: %s", err)
            kconfig = {}

        for opt in self.config.config_opts:
            if opt in kconfig:
                features["config." + opt] = kconfig[opt]

        try:
            if selinux_enabled():
                features["selinux.enabled"] = True
        except DiscoveryError as err:
            log.warning("%s", err)

        return features