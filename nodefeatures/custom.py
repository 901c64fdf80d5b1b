"""Custom features defined by match rules in the configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .base import DiscoveryError, FeatureSource, Features
from .rules import (
    CpuIDRule,
    KconfigRule,
    LoadedKModRule,
    NodenameRule,
    PciIDRule,
    Rule,
    UsbIDRule,
)

log = logging.getLogger(__name__)

DIRECTORY = "/etc/kubernetes/node-feature-discovery/custom.d"


def _fields(data: Any, allowed: tuple[str, ...], what: str) -> dict[str, Any]:
    """Map the keys of ``data`` onto ``allowed``, ignoring case.

    Raises ValueError on anything that is not a mapping or on unknown keys.
    """
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be a mapping, got {type(data).__name__}")
    lookup = {name.lower(): name for name in allowed}
    result: dict[str, Any] = {}
    for key, value in data.items():
        canonical = lookup.get(str(key).lower())
        if canonical is None:
            raise ValueError(f'unknown field "{key}" in {what}')
        result[canonical] = value
    return result


def _as_str(value: Any, what: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"{what} must be a string, got {type(value).__name__}")


def _str_list(value: Any, what: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{what} must be a list, got {type(value).__name__}")
    return [_as_str(item, what) for item in value]


def _device_rule_args(data: Any, what: str) -> dict[str, list[str]]:
    fields = _fields(data, ("class", "vendor", "device"), what)
    return {
        "classes": _str_list(fields.get("class"), f"{what}.class"),
        "vendors": _str_list(fields.get("vendor"), f"{what}.vendor"),
        "devices": _str_list(fields.get("device"), f"{what}.device"),
    }


@dataclass
class MatchRule:
    """A set of rules that must all match for a feature to be present."""

    pci_id: PciIDRule | None = None
    usb_id: UsbIDRule | None = None
    loaded_kmod: LoadedKModRule | None = None
    cpu_id: CpuIDRule | None = None
    kconfig: KconfigRule | None = None
    nodename: NodenameRule | None = None

    @classmethod
    def from_dict(cls, data: Any) -> MatchRule:
        """Build a match rule from its configuration mapping.

        Raises ValueError on unknown fields or values of the wrong type.
        """
        fields = _fields(
            data, ("pciId", "usbId", "loadedKMod", "cpuId", "kConfig", "nodename"), "matchOn"
        )
        rule = cls()
        if fields.get("pciId") is not None:
            rule.pci_id = PciIDRule(**_device_rule_args(fields["pciId"], "pciId"))
        if fields.get("usbId") is not None:
            rule.usb_id = UsbIDRule(**_device_rule_args(fields["usbId"], "usbId"))
        if fields.get("loadedKMod") is not None:
            rule.loaded_kmod = LoadedKModRule(_str_list(fields["loadedKMod"], "loadedKMod"))
        if fields.get("cpuId") is not None:
            rule.cpu_id = CpuIDRule(_str_list(fields["cpuId"], "cpuId"))
        if fields.get("kConfig") is not None:
            rule.kconfig = KconfigRule(_str_list(fields["kConfig"], "kConfig"))
        if fields.get("nodename") is not None:
            rule.nodename = NodenameRule(_str_list(fields["nodename"], "nodename"))
        return rule

    def rules(self) -> list[Rule]:
        """Return the rules that are set, in evaluation order."""
        candidates = (
            self.pci_id,
            self.usb_id,
            self.loaded_kmod,
            self.cpu_id,
            self.kconfig,
            self.nodename,
        )
        return [rule for rule in candidates if rule is not None]


@dataclass
class FeatureSpec:
    """A custom feature and the rules it is discovered by."""

    name: str = ""
    value: str | None = None
    match_on: list[MatchRule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> FeatureSpec:
        """Build a feature spec from its configuration mapping.

        Raises ValueError on unknown fields or values of the wrong type.
        """
        fields = _fields(data, ("name", "value", "matchOn"), "feature")
        name = fields.get("name")
        value = fields.get("value")
        match_on = fields.get("matchOn")
        if match_on is not None and not isinstance(match_on, list):
            raise ValueError(f"matchOn must be a list, got {type(match_on).__name__}")
        return cls(
            name="" if name is None else _as_str(name, "name"),
            value=None if value is None else _as_str(value, "value"),
            match_on=[MatchRule.from_dict(item) for item in match_on or []],
        )


def parse_feature_specs(text: str) -> list[FeatureSpec]:
    """Parse a YAML list of feature specs.

    Raises ValueError (or yaml.YAMLError) if the text is not a valid list.
    """
    data = yaml.safe_load(text)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError(f"feature config must be a list, got {type(data).__name__}")
    return [FeatureSpec.from_dict(item) for item in data]


def static_feature_config() -> list[FeatureSpec]:
    """Return the built-in custom features, e.g. RDMA related ones."""
    return [
        FeatureSpec(
            name="rdma.capable",
            match_on=[MatchRule(pci_id=PciIDRule(vendors=["15b3"]))],
        ),
        FeatureSpec(
            name="rdma.available",
            match_on=[MatchRule(loaded_kmod=LoadedKModRule(["ib_uverbs", "rdma_ucm"]))],
        ),
    ]


def read_dir(dir_name: str, recursive: bool = True) -> list[FeatureSpec]:
    """Read feature specs from the files of a directory.

    With ``recursive`` the first level of subdirectories is read too.
    Hidden files and files that cannot be read or parsed are skipped.
    """
    log.debug("getting files in %s", dir_name)
    try:
        with os.scandir(dir_name) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except FileNotFoundError:
        log.debug("custom config directory %r does not exist", dir_name)
        return []
    except OSError as err:
        log.error("unable to access custom config directory %r, %s", dir_name, err)
        return []

    features: list[FeatureSpec] = []
    for entry in entries:
        file_name = os.path.join(dir_name, entry.name)
        if entry.is_dir(follow_symlinks=False):
            if recursive:
                log.debug("processing dir %r", file_name)
                features.extend(read_dir(file_name, False))
            else:
                log.debug("skipping dir %r", file_name)
            continue
        if entry.name.startswith("."):
            log.debug("skipping hidden file %r", file_name)
            continue
        log.debug("processing file %r", file_name)

        try:
            text = Path(file_name).read_text()
        except (OSError, UnicodeDecodeError) as err:
            log.error("could not read custom config file %r, %s", file_name, err)
            continue
        log.debug("custom config rules raw: %s", text)

        try:
            features.extend(parse_feature_specs(text))
        except (yaml.YAMLError, ValueError, TypeError) as err:
            log.error("could not parse custom config file %r, %s", file_name, err)
    return features


def directory_feature_config(directory: str = DIRECTORY) -> list[FeatureSpec]:
    """Return the features configured in the custom features directory."""
    features = read_dir(directory, True)
    log.debug("all configmap based custom feature specs: %s", features)
    return features


def discover_feature(feature: FeatureSpec) -> bool:
    """Return True if any of the feature's match rules matches completely.

    Raises DiscoveryError if a rule cannot be evaluated.
    """
    return any(
        all(rule.match() for rule in match_rule.rules()) for match_rule in feature.match_on
    )


class CustomSource(FeatureSource):
    """Discovers user-defined features."""

    name = "custom"
    config_type = list

    def __init__(self, config: list[FeatureSpec] | None = None, directory: str = DIRECTORY):
        self.directory = directory
        super().__init__(config)

    def new_config(self) -> list[FeatureSpec]:
        return []

    def discover(self) -> Features:
        features: Features = {}
        all_specs = [
            *static_feature_config(),
            *self.config,
            *directory_feature_config(self.directory),
        ]
        log.debug("custom features configuration: %s", all_specs)
        for spec in all_specs:
            try:
                found = discover_feature(spec)
            except DiscoveryError as err:
                log.error("failed to discover feature: %r: %s", spec.name, err)
                continue
            if found:
                features[spec.name] = True if spec.value is None else spec.value
        return features