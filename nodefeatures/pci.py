"""PCI device features."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from . import busutils
from .base import DiscoveryError, FeatureSource, Features

log = logging.getLogger(__name__)

_DEFAULT_LABEL_FIELDS = ("class", "vendor")


@dataclass
class PciConfig:
    """Configuration of the pci source."""

    device_class_whitelist: list[str] = field(default_factory=lambda: ["03", "0b40", "12"])
    device_label_fields: list[str] = field(default_factory=lambda: list(_DEFAULT_LABEL_FIELDS))


def label_fields(
    configured: Iterable[str], allowed: Sequence[str], defaults: Sequence[str]
) -> list[str]:
    """Return the configured label fields that are allowed, in allowed order.

    Unknown fields are logged and ignored; if none are left, ``defaults``
    is returned.
    """
    wanted = set(configured)
    fields = [attr for attr in allowed if attr in wanted]
    invalid = sorted(wanted.difference(allowed))
    if invalid:
        log.warning("invalid fields '%s' in deviceLabelFields, ignoring...", invalid)
    if not fields:
        log.warning("no valid fields in deviceLabelFields defined, using the defaults")
        return list(defaults)
    return fields


def _matching_devices(
    devices: dict[str, list[dict[str, str]]], whitelist: Iterable[str]
) -> Iterable[dict[str, str]]:
    prefixes = [white.lower() for white in whitelist]
    for dev_class, class_devs in devices.items():
        for prefix in prefixes:
            if dev_class.startswith(prefix):
                yield from class_devs


def _device_label(dev: dict[str, str], fields: Sequence[str]) -> str:
    return "_".join(dev.get(attr, "") for attr in fields)


class PciSource(FeatureSource):
    """Reports present PCI devices of whitelisted classes."""

    name = "pci"
    config_type = PciConfig

    def new_config(self) -> PciConfig:
        return PciConfig()

    def discover(self) -> Features:
        fields = label_fields(
            self.config.device_label_fields,
            busutils.DEFAULT_PCI_DEV_ATTRS,
            _DEFAULT_LABEL_FIELDS,
        )
        attrs = {attr: False for attr in busutils.EXTRA_PCI_DEV_ATTRS}
        attrs.update({attr: True for attr in fields})

        try:
            devices = busutils.detect_pci(attrs)
        except DiscoveryError as err:
            raise DiscoveryError(f"failed to detect PCI devices: {err}") from err

        features: Features = {}
        for dev in _matching_devices(devices, self.config.device_class_whitelist):
            label = _device_label(dev, fields)
            features[label + ".present"] = True
            if "sriov_totalvfs" in dev:
                features[label + ".sriov.capable"] = True
        return features