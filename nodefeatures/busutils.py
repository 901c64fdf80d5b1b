"""Reading PCI and USB device attributes from sysfs."""

from __future__ import annotations

import glob
import logging
import os
from pathlib import Path

from . import hostdirs
from .base import DiscoveryError

log = logging.getLogger(__name__)

DEFAULT_PCI_DEV_ATTRS = ["class", "vendor", "device", "subsystem_vendor", "subsystem_device"]
EXTRA_PCI_DEV_ATTRS = ["sriov_totalvfs"]

DEFAULT_USB_DEV_ATTRS = ["class", "vendor", "device"]
USB_DEVICES_DIR = "/sys/bus/usb/devices"

# USB sysfs files have less friendly names; map them to the PCI attribute names.
_USB_ATTR_FILES = {
    "class": "bDeviceClass",
    "device": "idProduct",
    "vendor": "idVendor",
}


def read_pci_attribute(dev_path: str, attr_name: str) -> str:
    """Read one attribute of a PCI device, without the ``0x`` prefix.

    The class is cut to its first four characters so that the programming
    interface part is dropped.
    """
    try:
        data = Path(dev_path, attr_name).read_text()
    except OSError as err:
        raise DiscoveryError(f"failed to read device attribute {attr_name}: {err}") from err
    value = data.removeprefix("0x").strip()
    if attr_name == "class" and len(value) > 4:
        value = value[:4]
    return value


def _read_pci_device(dev_path: str, spec: dict[str, bool]) -> dict[str, str]:
    info: dict[str, str] = {}
    for attr, must in spec.items():
        try:
            info[attr] = read_pci_attribute(dev_path, attr)
        except DiscoveryError as err:
            if must:
                raise DiscoveryError(f"failed to read device {attr}: {err}") from err
    return info


def detect_pci(device_attr_spec: dict[str, bool]) -> dict[str, list[dict[str, str]]]:
    """List PCI devices grouped by class.

    ``device_attr_spec`` maps attribute names to whether they are mandatory;
    ``class`` is always mandatory. Devices missing a mandatory attribute
    are skipped.
    """
    base = hostdirs.SYSFS_DIR.path("bus/pci/devices")
    try:
        devices = sorted(os.listdir(base))
    except OSError as err:
        raise DiscoveryError(f"failed to list PCI devices in {base}: {err}") from err

    spec = {**device_attr_spec, "class": True}
    result: dict[str, list[dict[str, str]]] = {}
    for device in devices:
        try:
            info = _read_pci_device(os.path.join(base, device), spec)
        except DiscoveryError as err:
            log.error("%s", err)
            continue
        result.setdefault(info["class"], []).append(info)
    return result


def _read_usb_sysfs_attribute(path: str) -> str:
    try:
        return Path(path).read_text().strip()
    except OSError as err:
        raise DiscoveryError(
            f"failed to read device attribute {os.path.basename(path)}: {err}"
        ) from err


def read_usb_device(dev_path: str, device_attr_spec: dict[str, bool]) -> dict[str, dict[str, str]]:
    """Read a USB device and return its attributes keyed by class.

    A device whose class is ``00`` declares its classes per interface; one
    entry is returned for each distinct interface class.
    """
    info: dict[str, str] = {}
    for attr in device_attr_spec:
        file_name = _USB_ATTR_FILES.get(attr)
        if file_name is None:
            continue
        try:
            value = _read_usb_sysfs_attribute(os.path.join(dev_path, file_name))
        except DiscoveryError:
            continue
        if value:
            info[attr] = value

    device_class = info.get("class", "")
    if device_class != "00":
        return {device_class: info}

    classes: dict[str, dict[str, str]] = {}
    for intf in sorted(glob.glob(os.path.join(glob.escape(dev_path), "*", "bInterfaceClass"))):
        intf_class = _read_usb_sysfs_attribute(intf)
        classes[intf_class] = {**info, "class": intf_class}
    return classes


def detect_usb(
    device_attr_spec: dict[str, bool], devices_dir: str = USB_DEVICES_DIR
) -> dict[str, list[dict[str, str]]]:
    """List USB devices grouped by class.

    Only entries of ``devices_dir`` that have a product id are devices.
    """
    spec = {**device_attr_spec, "class": True}
    result: dict[str, list[dict[str, str]]] = {}
    pattern = os.path.join(glob.escape(devices_dir), "*", "idProduct")
    for product_file in sorted(glob.glob(pattern)):
        try:
            dev_map = read_usb_device(os.path.dirname(product_file), spec)
        except DiscoveryError as err:
            log.error("%s", err)
            continue
        for dev_class, info in dev_map.items():
            result.setdefault(dev_class, []).append(info)
    return result