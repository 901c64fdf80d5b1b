"""Rules that custom features are matched on."""

from __future__ import annotations

import abc
import functools
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from . import busutils, cpuidutils, kernelutils
from .base import DiscoveryError

log = logging.getLogger(__name__)

KMOD_PROCFS_PATH = "/proc/modules"
_NODE_NAME_ENV = "NODE_NAME"


class Rule(abc.ABC):
    """A condition on the node that either matches or does not."""

    @abc.abstractmethod
    def match(self) -> bool:
        """Return True if the rule matches; raise DiscoveryError on failure."""


@functools.lru_cache(maxsize=None)
def _system_cpuid_flags() -> frozenset[str]:
    return frozenset(cpuidutils.get_cpuid_flags())


def kconfig_flags(kconfig: dict[str, str]) -> frozenset[str]:
    """Turn a parsed kernel config into matchable flags.

    Enabled options appear by name, others as ``NAME=value``.
    """
    return frozenset(
        name if value == "true" else f"{name}={value}" for name, value in kconfig.items()
    )


@functools.lru_cache(maxsize=None)
def _system_kconfig_flags() -> frozenset[str]:
    try:
        return kconfig_flags(kernelutils.parse_kconfig(""))
    except DiscoveryError:
        return frozenset()


def parse_loaded_modules(text: str) -> set[str]:
    """Return the names of the modules listed in /proc/modules content."""
    modules: set[str] = set()
    for line in text.split("\n"):
        fields = line.split()
        if fields:
            modules.add(fields[0])
    return modules


@dataclass
class CpuIDRule(Rule):
    """Matches if all listed CPUID flags are present."""

    flags: list[str] = field(default_factory=list)
    available: frozenset[str] | None = field(default=None, compare=False)

    def match(self) -> bool:
        available = self.available if self.available is not None else _system_cpuid_flags()
        return all(flag in available for flag in self.flags)


@dataclass
class KconfigRule(Rule):
    """Matches if all listed kernel config options are set."""

    options: list[str] = field(default_factory=list)
    available: frozenset[str] | None = field(default=None, compare=False)

    def match(self) -> bool:
        available = self.available if self.available is not None else _system_kconfig_flags()
        return all(option in available for option in self.options)


@dataclass
class LoadedKModRule(Rule):
    """Matches if all listed kernel modules are loaded."""

    modules: list[str] = field(default_factory=list)
    modules_path: str = field(default=KMOD_PROCFS_PATH, compare=False)

    def _loaded_modules(self) -> set[str]:
        try:
            text = Path(self.modules_path).read_text()
        except OSError as err:
            raise DiscoveryError(
                f"failed to get loaded kernel modules. "
                f"failed to read file {self.modules_path}: {err}"
            ) from err
        return parse_loaded_modules(text)

    def match(self) -> bool:
        loaded = self._loaded_modules()
        return all(module in loaded for module in self.modules)


@dataclass
class NodenameRule(Rule):
    """Matches if any of the patterns is found in the node name."""

    patterns: list[str] = field(default_factory=list)
    node_name: str = field(
        default_factory=lambda: os.environ.get(_NODE_NAME_ENV, ""), compare=False
    )

    def match(self) -> bool:
        for pattern in self.patterns:
            log.debug("matchNodename %s", pattern)
            try:
                found = re.search(pattern, self.node_name) is not None
            except re.error as err:
                log.error("nodename rule: invalid nodename regexp %r: %s", pattern, err)
                continue
            if not found:
                log.debug(
                    "nodename rule: No match for pattern %r with node %r", pattern, self.node_name
                )
                continue
            log.debug("nodename rule: Match for pattern %r with node %r", pattern, self.node_name)
            return True
        return False


_ID_ATTRS = {"class": True, "vendor": True, "device": True}


@dataclass
class _DeviceIDRule(Rule):
    """Matches devices by class, vendor and device id.

    Within one attribute any listed value matches; all non-empty
    attributes must match. A rule with no attributes matches nothing.
    """

    classes: list[str] = field(default_factory=list)
    vendors: list[str] = field(default_factory=list)
    devices: list[str] = field(default_factory=list)

    def _device_matches(self, dev: dict[str, str]) -> bool:
        criteria = (
            ("class", self.classes),
            ("vendor", self.vendors),
            ("device", self.devices),
        )
        if not any(values for _, values in criteria):
            return False
        return all(not values or dev.get(attr, "") in values for attr, values in criteria)

    def _any_matches(self, devices_by_class: dict[str, list[dict[str, str]]]) -> bool:
        return any(
            self._device_matches(dev) for devs in devices_by_class.values() for dev in devs
        )


@dataclass
class PciIDRule(_DeviceIDRule):
    """Matches PCI devices by class, vendor and device id."""

    def matches_device(self, dev: dict[str, str]) -> bool:
        """Return True if the single PCI device ``dev`` satisfies the rule."""
        return self._device_matches(dev)

    def match(self) -> bool:
        try:
            devices = busutils.detect_pci(dict(_ID_ATTRS))
        except DiscoveryError as err:
            raise DiscoveryError(f"failed to detect PCI devices: {err}") from err
        return self._any_matches(devices)


@dataclass
class UsbIDRule(_DeviceIDRule):
    """Matches USB devices by class, vendor and device id."""

    devices_dir: str = field(default=busutils.USB_DEVICES_DIR, compare=False)

    def matches_device(self, dev: dict[str, str]) -> bool:
        """Return True if the single USB device ``dev`` satisfies the rule."""
        return self._device_matches(dev)

    def match(self) -> bool:
        try:
            devices = busutils.detect_usb(dict(_ID_ATTRS), self.devices_dir)
        except DiscoveryError as err:
            raise DiscoveryError(f"failed to detect USB devices: {err}") from err
        return self._any_matches(devices)