import pytest

from nodefeatures.base import DiscoveryError
from nodefeatures.rules import (
    CpuIDRule,
    KconfigRule,
    LoadedKModRule,
    NodenameRule,
    PciIDRule,
    UsbIDRule,
    kconfig_flags,
    parse_loaded_modules,
)


def test_cpuid_rule_all_present():
    rule = CpuIDRule(["AVX", "SSE"], available=frozenset({"AVX", "SSE", "FMA3"}))
    assert rule.match() is True


def test_cpuid_rule_one_missing():
    rule = CpuIDRule(["AVX", "AVX512F"], available=frozenset({"AVX"}))
    assert rule.match() is False


def test_cpuid_rule_empty_matches():
    assert CpuIDRule([], available=frozenset()).match() is True


def test_kconfig_flags_format():
    flags = kconfig_flags({"NO_HZ": "true", "HZ": "1000"})
    assert flags == frozenset({"NO_HZ", "HZ=1000"})


def test_kconfig_rule_matches_value_and_flag():
    available = kconfig_flags({"NO_HZ": "true", "HZ": "1000"})
    assert KconfigRule(["NO_HZ", "HZ=1000"], available=available).match() is True
    assert KconfigRule(["HZ"], available=available).match() is False


def test_parse_loaded_modules():
    text = "ib_uverbs 1 0 - Live 0x0\nrdma_ucm 2 0 - Live 0x0\n\n"
    assert parse_loaded_modules(text) == {"ib_uverbs", "rdma_ucm"}


def test_loaded_kmod_rule(tmp_path):
    modules = tmp_path / "modules"
    modules.write_text("ib_uverbs 1 0 - Live 0x0\nrdma_ucm 2 0 - Live 0x0\n")
    assert LoadedKModRule(["ib_uverbs", "rdma_ucm"], modules_path=str(modules)).match() is True
    assert LoadedKModRule(["ib_uverbs", "nvme"], modules_path=str(modules)).match() is False


def test_loaded_kmod_rule_missing_file(tmp_path):
    rule = LoadedKModRule(["ib_uverbs"], modules_path=str(tmp_path / "absent"))
    with pytest.raises(DiscoveryError):
        rule.match()


def test_nodename_rule_matches_pattern():
    assert NodenameRule(["^node-.*"], node_name="node-1").match() is True


def test_nodename_rule_no_match():
    assert NodenameRule(["thisNameShouldNeverMatch"], node_name="node-1").match() is False


def test_nodename_rule_skips_invalid_pattern():
    rule = NodenameRule(["(", "node"], node_name="worker-node")
    assert rule.match() is True
    assert NodenameRule(["("], node_name="worker-node").match() is False


def test_pci_rule_device_matching():
    dev = {"class": "0300", "vendor": "15b3", "device": "1017"}
    assert PciIDRule(vendors=["15b3"]).matches_device(dev) is True
    assert PciIDRule(vendors=["8086", "15b3"], classes=["0300"]).matches_device(dev) is True
    assert PciIDRule(vendors=["15b3"], devices=["abcd"]).matches_device(dev) is False


def test_pci_rule_empty_matches_nothing():
    dev = {"class": "0300", "vendor": "15b3", "device": "1017"}
    assert PciIDRule().matches_device(dev) is False


def _usb_device(root, name, vendor, product, dev_class):
    dev = root / name
    dev.mkdir()
    (dev / "idVendor").write_text(vendor + "\n")
    (dev / "idProduct").write_text(product + "\n")
    (dev / "bDeviceClass").write_text(dev_class + "\n")


def test_usb_rule_match(tmp_path):
    _usb_device(tmp_path, "1-1", "abcd", "0001", "ff")
    assert UsbIDRule(vendors=["abcd"], devices_dir=str(tmp_path)).match() is True
    assert UsbIDRule(vendors=["0000"], devices_dir=str(tmp_path)).match() is False
    assert UsbIDRule(classes=["ff"], devices=["0001"], devices_dir=str(tmp_path)).match() is True


def test_usb_rule_no_devices(tmp_path):
    assert UsbIDRule(vendors=["abcd"], devices_dir=str(tmp_path)).match() is False