"""USB device features."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from . import busutils
from .base import DiscoveryError, FeatureSource, Features
from .pci import _device_label, _matching_devices, label_fields

log = logging.getLogger(__name__)

_FALLBACK_LABEL_FIELDS = ("vendor", "device")


@dataclass
class UsbConfig:
    """Configuration of the usb source.

    The default whitelist holds the classes accelerators are typically
    mapped to: video, miscellaneous, application and vendor specific.
    """

    device_class_whitelist: list[str] = field(default_factory=lambda: ["0e", "ef", "fe", "ff"])
    device_label_fields: list[str] = field(
        default_factory=lambda: ["class", "vendor", "device"]
    )


class UsbSource(FeatureSource):
    """Reports present USB devices of whitelisted classes."""

    name = "usb"
    config_type = UsbConfig

    def __init__(
        self, config: UsbConfig | None = None, devices_dir: str = busutils.USB_DEVICES_DIR
    ) -> None:
        self.devices_dir = devices_dir
        super().__init__(config)

    def new_config(self) -> UsbConfig:
        return UsbConfig()

    def discover(self) -> Features:
        fields = label_fields(
            self.config.device_label_fields,
            busutils.DEFAULT_USB_DEV_ATTRS,
            _FALLBACK_LABEL_FIELDS,
        )
        attrs = {attr: True for attr in fields}

        try:
            devices = busutils.detect_usb(attrs, self.devices_dir)
        except DiscoveryError as err:
            raise DiscoveryError(f"failed to detect USB devices: {err}") from err

        features: Features = {}
        for dev in _matching_devices(devices, self.config.device_class_whitelist):
            features[_device_label(dev, fields) + ".present"] = True
        return features