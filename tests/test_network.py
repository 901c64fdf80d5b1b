import pytest

from nodefeatures import hostdirs
from nodefeatures.base import DiscoveryError
from nodefeatures.network import NetworkSource, read_if_flags


@pytest.fixture
def sysfs(tmp_path, monkeypatch):
    monkeypatch.setattr(hostdirs, "SYSFS_DIR", hostdirs.HostDir(str(tmp_path)))
    (tmp_path / "class" / "net").mkdir(parents=True)
    return tmp_path


def _iface(sysfs, name, flags, total=None, num=None):
    iface = sysfs / "class" / "net" / name
    iface.mkdir()
    (iface / "flags").write_text(flags + "\n")
    if total is not None or num is not None:
        (iface / "device").mkdir()
    if total is not None:
        (iface / "device" / "sriov_totalvfs").write_text(total + "\n")
    if num is not None:
        (iface / "device" / "sriov_numvfs").write_text(num + "\n")


def test_read_if_flags_hex(sysfs):
    _iface(sysfs, "eth0", "0x1003")
    assert read_if_flags("eth0") == 0x1003


def test_read_if_flags_octal_and_decimal(sysfs):
    _iface(sysfs, "a", "010")
    _iface(sysfs, "b", "9")
    assert read_if_flags("a") == 8
    assert read_if_flags("b") == 9


def test_read_if_flags_invalid(sysfs):
    _iface(sysfs, "eth0", "garbage")
    with pytest.raises(DiscoveryError):
        read_if_flags("eth0")


def test_read_if_flags_missing(sysfs):
    with pytest.raises(DiscoveryError):
        read_if_flags("nothere")


def test_discover_configured(sysfs):
    _iface(sysfs, "eth0", "0x1003", total="8", num="2")
    assert NetworkSource().discover() == {"sriov.capable": True, "sriov.configured": True}


def test_discover_capable_only(sysfs):
    _iface(sysfs, "eth0", "0x1003", total="8", num="0")
    assert NetworkSource().discover() == {"sriov.capable": True}


def test_discover_ignores_loopback_and_down(sysfs):
    _iface(sysfs, "lo", "0x9", total="8", num="2")
    _iface(sysfs, "eth1", "0x1002", total="8", num="2")
    assert NetworkSource().discover() == {}


def test_discover_no_sriov(sysfs):
    _iface(sysfs, "eth0", "0x1003")
    _iface(sysfs, "eth1", "0x1003", total="0")
    assert NetworkSource().discover() == {}


def test_discover_missing_directory(tmp_path, monkeypatch):
    monkeypatch.setattr(hostdirs, "SYSFS_DIR", hostdirs.HostDir(str(tmp_path)))
    with pytest.raises(DiscoveryError):
        NetworkSource().discover()