"""CPU feature flags from the kernel's hardware capability words."""

from __future__ import annotations

import platform
import struct
from collections.abc import Mapping
from pathlib import Path

AUXV_PATH = "/proc/self/auxv"

# Auxiliary vector entry types.
AT_NULL = 0
AT_HWCAP = 16
AT_HWCAP2 = 26

_AUXV_ENTRY = struct.Struct("@LL")

ARM_FLAGS: dict[int, str] = {
    1 << bit: name
    for bit, name in enumerate(
        [
            "SWP",
            "HALF",
            "THUMB",
            "26BIT",
            "FASTMUL",
            "FPA",
            "VFP",
            "EDSP",
            "JAVA",
            "IWMMXT",
            "CRUNCH",
            "THUMBEE",
            "NEON",
            "VFPv3",
            "VFPv3D16",
            "TLS",
            "VFPv4",
            "IDIVA",
            "IDIVT",
            "IDIV",
            "VFPD32",
            "LPAE",
            "EVTSTRM",
            "AES",
            "PMULL",
            "SHA1",
            "SHA2",
            "CRC32",
        ]
    )
}

ARM64_FLAGS: dict[int, str] = {
    1 << bit: name
    for bit, name in enumerate(
        [
            "FP",
            "ASIMD",
            "EVTSTRM",
            "AES",
            "PMULL",
            "SHA1",
            "SHA2",
            "CRC32",
            "ATOMICS",
            "FPHP",
            "ASIMDHP",
            "CPUID",
            "ASIMDRDM",
            "JSCVT",
            "FCMA",
            "LRCPC",
            "DCPOP",
            "SHA3",
            "SM3",
            "SM4",
            "ASIMDDP",
            "SHA512",
            "SVE",
        ]
    )
}

PPC64LE_FLAGS: dict[int, str] = {
    0x80000000: "PPC32",
    0x40000000: "PPC64",
    0x20000000: "PPC601",
    0x10000000: "ALTIVEC",
    0x08000000: "FPU",
    0x04000000: "MMU",
    0x02000000: "4xxMAC",
    0x01000000: "UCACHE",
    0x00800000: "SPE",
    0x00400000: "EFPFLOAT",
    0x00200000: "EFPDOUBLE",
    0x00100000: "NOTB",
    0x00080000: "POWER4",
    0x00040000: "POWER5",
    0x00020000: "POWER5+",
    0x00010000: "CELLBE",
    0x00008000: "BOOKE",
    0x00004000: "SMT",
    0x00002000: "IC_SNOOP",
    0x00001000: "ARCH_2_05",
    0x00000800: "PA6T",
    0x00000400: "DFP",
    0x00000200: "POWER6X",
    0x00000100: "ARCH_2_06",
    0x00000080: "VSX",
    0x00000040: "ARCHPMU",
    0x00000002: "TRUE_LE",
    0x00000001: "PPCLE",
}

PPC64LE_FLAGS2: dict[int, str] = {
    0x80000000: "ARCH_2_07",
    0x40000000: "HTM",
    0x20000000: "DSCR",
    0x10000000: "EBB",
    0x08000000: "ISEL",
    0x04000000: "TAR",
    0x02000000: "VCRYPTO",
    0x01000000: "HTM-NOSC",
    0x00800000: "ARCH_3_00",
    0x00400000: "IEEE128",
    0x00200000: "DARN",
    0x00100000: "SCV",
    0x00080000: "HTM-NO-SUSPEND",
}

S390X_FLAGS: dict[int, str] = {
    1: "ESAN3",
    2: "ZARCH",
    4: "STFLE",
    8: "MSA",
    16: "LDISP",
    32: "EIMM",
    64: "DFP",
    128: "EDAT",
    256: "ETF3EH",
    512: "HIGHGPRS",
    1024: "TE",
    2048: "VX",
    4096: "VXD",
    8192: "VXE",
    16384: "GS",
    32768: "VXE2",
    65536: "VXP",
    131072: "SORT",
    262144: "DFLT",
}


def decode_hwcap(hwcap: int, names: Mapping[int, str]) -> list[str]:
    """Return the names of the bits set in ``hwcap``, lowest bit first.

    Bits without a known name are left out.
    """
    return [
        names[1 << bit]
        for bit in range(64)
        if hwcap & (1 << bit) and (1 << bit) in names
    ]


def read_auxv(path: str | None = None) -> dict[int, int]:
    """Read the process auxiliary vector as a mapping of type to value."""
    data = Path(path if path is not None else AUXV_PATH).read_bytes()
    usable = len(data) - len(data) % _AUXV_ENTRY.size
    entries: dict[int, int] = {}
    for a_type, a_val in _AUXV_ENTRY.iter_unpack(data[:usable]):
        if a_type == AT_NULL:
            break
        entries[a_type] = a_val
    return entries


def _arch_family(machine: str) -> str | None:
    machine = machine.lower()
    if machine in ("aarch64", "arm64"):
        return "arm64"
    if machine.startswith("arm"):
        return "arm"
    if machine == "ppc64le":
        return "ppc64le"
    if machine == "s390x":
        return "s390x"
    return None


def flags_for_machine(machine: str, hwcap: int, hwcap2: int = 0) -> list[str]:
    """Decode the capability words of the given machine architecture.

    Architectures without a capability table yield no flags.
    """
    family = _arch_family(machine)
    if family == "arm":
        return decode_hwcap(hwcap, ARM_FLAGS)
    if family == "arm64":
        return decode_hwcap(hwcap, ARM64_FLAGS)
    if family == "ppc64le":
        return decode_hwcap(hwcap, PPC64LE_FLAGS) + decode_hwcap(hwcap2, PPC64LE_FLAGS2)
    if family == "s390x":
        return decode_hwcap(hwcap, S390X_FLAGS)
    return []


def get_cpuid_flags() -> list[str]:
    """Return the feature flags of the CPU this process runs on."""
    machine = platform.machine()
    if _arch_family(machine) is None:
        return []
    try:
        auxv = read_auxv()
    except OSError:
        return []
    return flags_for_machine(machine, auxv.get(AT_HWCAP, 0), auxv.get(AT_HWCAP2, 0))