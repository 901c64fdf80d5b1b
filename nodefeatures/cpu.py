"""CPU related features: hyper-threading, CPUID flags, p-states and c-states."""

from __future__ import annotations

import logging
import os
import platform
import re
from dataclasses import dataclass, field
from pathlib import Path

from . import cpuidutils, hostdirs
from .base import DiscoveryError, FeatureSource, Features

log = logging.getLogger(__name__)

_X86_MACHINES = frozenset({"x86_64", "amd64", "i386", "i486", "i586", "i686", "x86"})
_INT_RE = re.compile(r"[+-]?[0-9]+")


def _default_blacklist() -> list[str]:
    return [
        "BMI1",
        "BMI2",
        "CLMUL",
        "CMOV",
        "CX16",
        "ERMS",
        "F16C",
        "HTT",
        "LZCNT",
        "MMX",
        "MMXEXT",
        "NX",
        "POPCNT",
        "RDRAND",
        "RDSEED",
        "RDTSCP",
        "SGX",
        "SGXLC",
        "SSE",
        "SSE2",
        "SSE3",
        "SSE4.1",
        "SSE4.2",
        "SSSE3",
    ]


@dataclass
class CpuidConfig:
    """Which CPUID flags to report."""

    attribute_blacklist: list[str] = field(default_factory=_default_blacklist)
    attribute_whitelist: list[str] = field(default_factory=list)


@dataclass
class CpuConfig:
    """Configuration of the cpu source."""

    cpuid: CpuidConfig = field(default_factory=CpuidConfig)


@dataclass(frozen=True)
class KeyFilter:
    """Selects keys by a whitelist or a blacklist."""

    keys: frozenset[str] = frozenset()
    whitelist: bool = False

    def unmask(self, key: str) -> bool:
        """Return True if ``key`` passes the filter."""
        return (key in self.keys) == self.whitelist


def build_cpuid_filter(config: CpuConfig) -> KeyFilter:
    """Build the CPUID filter; a non-empty whitelist overrides the blacklist."""
    if config.cpuid.attribute_whitelist:
        return KeyFilter(frozenset(config.cpuid.attribute_whitelist), whitelist=True)
    return KeyFilter(frozenset(config.cpuid.attribute_blacklist), whitelist=False)


def _atoi(text: str) -> int:
    value = text.strip()
    if not _INT_RE.fullmatch(value):
        raise ValueError(f"invalid syntax: {value!r}")
    return int(value)


def have_thread_siblings() -> bool:
    """Return True if any CPU has thread siblings.

    Raises OSError if the CPU topology cannot be read.
    """
    devices_dir = hostdirs.SYSFS_DIR.path("bus/cpu/devices")
    for cpu in sorted(os.listdir(devices_dir)):
        siblings = Path(
            hostdirs.SYSFS_DIR.path("bus/cpu/devices", cpu, "topology/thread_siblings_list")
        ).read_bytes()
        if b"," in siblings or b"-" in siblings:
            return True
    return False


def discover_sst_bf() -> bool:
    """Report whether SST-BF is enabled.

    Detection needs the nominal base frequency from the CPUID instruction,
    which is not available, so SST-BF is always reported as disabled.
    """
    return False


def discover_rdt() -> list[str]:
    """Return the RDT capabilities of the CPU.

    These are read with the CPUID instruction, which is not available, so
    no capabilities are reported.
    """
    return []


def detect_cstate() -> bool:
    """Return True if c-states are enabled with the intel_idle driver.

    Raises DiscoveryError if this cannot be determined.
    """
    try:
        driver = Path(
            hostdirs.SYSFS_DIR.path("devices/system/cpu/cpuidle/current_driver")
        ).read_text()
    except OSError as err:
        raise DiscoveryError(f"cannot get driver for cpuidle: {err}") from err

    if driver.strip() != "intel_idle":
        raise DiscoveryError(f"intel_idle driver is not in use: {driver}")

    try:
        data = Path(
            hostdirs.SYSFS_DIR.path("module/intel_idle/parameters/max_cstate")
        ).read_text()
    except OSError as err:
        raise DiscoveryError(f"cannot determine cstate from max_cstates: {err}") from err

    try:
        cstates = _atoi(data)
    except ValueError as err:
        raise DiscoveryError(f"non-integer value of cstates: {err}") from err
    return cstates > 0


def _scaling_governor() -> str:
    cpufreq_dir = hostdirs.SYSFS_DIR.path("devices/system/cpu/cpufreq")
    try:
        policies = sorted(os.listdir(cpufreq_dir))
    except OSError as err:
        log.error("failed to read cpufreq directory: %s", err)
        return ""

    scaling = ""
    for policy in policies:
        try:
            cpus = Path(hostdirs.SYSFS_DIR.path(cpufreq_dir, policy, "affected_cpus")).read_text()
        except OSError:
            log.error("could not read cpufreq policy %s affected_cpus", policy)
            continue
        if not cpus.strip():
            log.info("policy %s has no associated cpus", policy)
            continue
        try:
            governor = Path(
                hostdirs.SYSFS_DIR.path(cpufreq_dir, policy, "scaling_governor")
            ).read_text().strip()
        except OSError:
            log.error("could not read cpufreq policy %s scaling_governor", policy)
            continue
        if scaling and scaling != governor:
            log.info("scaling_governor for policy %s doesn't match prior policy", policy)
            return ""
        scaling = governor
    return scaling


def detect_pstate(machine: str | None = None) -> dict[str, str]:
    """Return p-state features such as turbo boost and the scaling governor.

    Only x86 machines are inspected; others yield no features.
    Raises DiscoveryError if the p-state status cannot be read.
    """
    if machine is None:
        machine = platform.machine()
    if machine.lower() not in _X86_MACHINES:
        return {}

    try:
        status = Path(
            hostdirs.SYSFS_DIR.path("devices/system/cpu/intel_pstate/status")
        ).read_text().strip()
    except OSError as err:
        raise DiscoveryError(f"could not read pstate status: {err}") from err

    if status == "off":
        log.info("intel_pstate driver is not in use")
        return {}
    features = {"status": status}

    try:
        no_turbo = Path(
            hostdirs.SYSFS_DIR.path("devices/system/cpu/intel_pstate/no_turbo")
        ).read_bytes()
    except OSError as err:
        log.error("can't detect whether turbo boost is enabled: %s", err)
    else:
        features["turbo"] = "true" if no_turbo.startswith(b"0") else "false"

    if status != "active":
        return features

    scaling = _scaling_governor()
    if scaling:
        features["scaling_governor"] = scaling
    return features


class CpuSource(FeatureSource):
    """Discovers CPU features."""

    name = "cpu"
    config_type = CpuConfig

    def new_config(self) -> CpuConfig:
        return CpuConfig()

    def discover(self) -> Features:
        features: Features = {}

        try:
            if have_thread_siblings():
                features["hardware_multithreading"] = True
        except (OSError, DiscoveryError) as err:
            log.error("failed to detect hyper-threading: %s", err)

        try:
            if discover_sst_bf():
                features["power.sst_bf.enabled"] = True
        except (OSError, DiscoveryError) as err:
            log.error("failed to detect SST-BF: %s", err)

        cpuid_filter = build_cpuid_filter(self.config)
        for flag in cpuidutils.get_cpuid_flags():
            if cpuid_filter.unmask(flag):
                features["cpuid." + flag] = True

        try:
            pstate = detect_pstate()
        except DiscoveryError as err:
            log.error("%s", err)
        else:
            for key, value in pstate.items():
                features["pstate." + key] = value

        for rdt in discover_rdt():
            features["rdt." + rdt] = True

        try:
            features["cstate.enabled"] = detect_cstate()
        except DiscoveryError as err:
            log.error("failed to detect cstate: %s", err)

        return features