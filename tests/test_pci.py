import pytest

from nodefeatures import busutils, hostdirs
from nodefeatures.base import DiscoveryError
from nodefeatures.pci import PciConfig, PciSource, label_fields


@pytest.fixture
def sysfs(tmp_path, monkeypatch):
    monkeypatch.setattr(hostdirs, "SYSFS_DIR", hostdirs.HostDir(str(tmp_path)))
    (tmp_path / "bus" / "pci" / "devices").mkdir(parents=True)
    return tmp_path


def _device(sysfs, slot, **attrs):
    dev = sysfs / "bus" / "pci" / "devices" / slot
    dev.mkdir()
    for name, value in attrs.items():
        (dev / name).write_text(value + "\n")


def test_label_fields_keeps_allowed_order():
    fields = label_fields(["vendor", "bogus", "class"], busutils.DEFAULT_PCI_DEV_ATTRS, ["x"])
    assert fields == ["class", "vendor"]


def test_label_fields_falls_back_to_defaults():
    assert label_fields(["bogus"], busutils.DEFAULT_PCI_DEV_ATTRS, ["class", "vendor"]) == [
        "class",
        "vendor",
    ]


def test_new_config_defaults():
    config = PciSource().new_config()
    assert config.device_class_whitelist == ["03", "0b40", "12"]
    assert config.device_label_fields == ["class", "vendor"]


def test_wrong_config_type():
    with pytest.raises(TypeError):
        PciSource(config=object())


def test_discover_whitelisted_device(sysfs):
    _device(sysfs, "0000:00:02.0", **{"class": "0x030000", "vendor": "0x8086", "device": "0x1234"})
    _device(sysfs, "0000:00:1f.0", **{"class": "0x060100", "vendor": "0x8086", "device": "0x5678"})
    assert PciSource().discover() == {"0300_8086.present": True}


def test_discover_sriov_capable(sysfs):
    _device(
        sysfs,
        "0000:01:00.0",
        **{"class": "0x120000", "vendor": "0xabcd", "device": "0x0001", "sriov_totalvfs": "4"},
    )
    features = PciSource().discover()
    assert features == {"1200_abcd.present": True, "1200_abcd.sriov.capable": True}


def test_discover_custom_fields_and_uppercase_whitelist(sysfs):
    _device(sysfs, "0000:02:00.0", **{"class": "0x0b4000", "vendor": "0xabcd", "device": "0x0002"})
    config = PciConfig(device_class_whitelist=["0B40"], device_label_fields=["device", "vendor"])
    assert PciSource(config).discover() == {"abcd_0002.present": True}


def test_discover_missing_sysfs(tmp_path, monkeypatch):
    monkeypatch.setattr(hostdirs, "SYSFS_DIR", hostdirs.HostDir(str(tmp_path)))
    with pytest.raises(DiscoveryError):
        PciSource().discover()