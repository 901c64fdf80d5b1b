import pytest

from nodefeatures.kernel import (
    KernelConfig,
    KernelSource,
    _split_version,
    sanitize_version,
)


def test_sanitize_replaces_forbidden_characters():
    assert sanitize_version("5.4.0+rt") == "5.4.0_rt"


def test_sanitize_trims_edges():
    assert sanitize_version("-5.10.0_") == "5.10.0"


def test_sanitize_keeps_valid_string():
    value = "5.10.0-generic"
    assert sanitize_version(value) == value


def test_split_version_full():
    version = _split_version("5.10.17-generic")
    assert version["full"] == "5.10.17-generic"
    assert version["major"] == "5"
    assert version["minor"] == "10"
    assert version["revision"] == "17"


def test_split_version_missing_parts_are_empty():
    version = _split_version("5")
    assert version["major"] == "5"
    assert version["minor"] == ""
    assert version["revision"] == ""


def test_split_version_unparsable_only_full():
    assert _split_version("abc") == {"full": "abc"}


def test_default_config():
    config = KernelSource().config
    assert config.kconfig_file == ""
    assert config.config_opts == ["NO_HZ", "NO_HZ_IDLE", "NO_HZ_FULL", "PREEMPT"]


def test_invalid_config_type():
    with pytest.raises(TypeError):
        KernelSource(config={"kconfig_file": ""})


def test_discover_reports_configured_options(tmp_path):
    kconfig = tmp_path / "config"
    kconfig.write_text(
        "CONFIG_NO_HZ=y\nCONFIG_NO_HZ_FULL=m\nCONFIG_FOO=y\n# CONFIG_PREEMPT is not set\n"
    )
    source = KernelSource(config=KernelConfig(kconfig_file=str(kconfig)))
    features = source.discover()
    assert features["config.NO_HZ"] == "true"
    assert features["config.NO_HZ_FULL"] == "true"
    assert "config.PREEMPT" not in features
    assert "config.FOO" not in features


def test_discover_custom_option_value(tmp_path):
    kconfig = tmp_path / "config"
    kconfig.write_text('CONFIG_LOCALVERSION="-custom"\n')
    source = KernelSource(
        config=KernelConfig(kconfig_file=str(kconfig), config_opts=["LOCALVERSION"])
    )
    assert source.discover()["config.LOCALVERSION"] == "-custom"