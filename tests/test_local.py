import logging

import pytest

from nodefeatures.base import DiscoveryError
from nodefeatures.local import (
    LocalSource,
    features_from_files,
    features_from_hooks,
    parse_features,
    read_feature_file,
    run_hook,
)


def _script(path, body):
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(0o755)
    return path


def test_parse_features_prefixes_plain_keys():
    assert parse_features(["foo=bar", "flag"], "src") == {"src-foo": "bar", "src-flag": "true"}


def test_parse_features_namespaced_keys():
    result = parse_features(["/plain=1", "example.com/feat=2", ""], "src")
    assert result == {"plain": "1", "example.com/feat": "2"}


def test_parse_features_splits_on_first_equals():
    assert parse_features(["k=a=b"], "p") == {"p-k": "a=b"}


def test_run_hook_returns_output_lines(tmp_path):
    _script(tmp_path / "hook", "echo one=1\necho two\n")
    lines = run_hook(str(tmp_path), "hook")
    assert parse_features(lines, "hook") == {"hook-one": "1", "hook-two": "true"}


def test_run_hook_failure_raises(tmp_path):
    _script(tmp_path / "bad", "echo x=1\nexit 3\n")
    with pytest.raises(DiscoveryError):
        run_hook(str(tmp_path), "bad")


def test_run_hook_forwards_stderr(tmp_path, caplog):
    _script(tmp_path / "noisy", "echo oops >&2\necho a=b\n")
    with caplog.at_level(logging.ERROR, logger="nodefeatures.local"):
        lines = run_hook(str(tmp_path), "noisy")
    assert "a=b" in lines
    assert "noisy: oops" in caplog.messages


def test_run_hook_missing_raises(tmp_path):
    with pytest.raises(DiscoveryError):
        run_hook(str(tmp_path), "absent")


def test_run_hook_directory_yields_nothing(tmp_path):
    (tmp_path / "sub").mkdir()
    assert run_hook(str(tmp_path), "sub") == []


def test_read_feature_file(tmp_path):
    (tmp_path / "f").write_text("a=1\nb\n")
    assert read_feature_file(str(tmp_path), "f") == ["a=1", "b", ""]


def test_features_from_files_merges(tmp_path):
    (tmp_path / "one").write_text("x=1\n")
    (tmp_path / "two").write_text("/shared=2\ny\n")
    assert features_from_files(str(tmp_path)) == {"one-x": "1", "shared": "2", "two-y": "true"}


def test_features_from_files_later_file_overrides(tmp_path):
    (tmp_path / "a").write_text("/k=first\n")
    (tmp_path / "b").write_text("/k=second\n")
    assert features_from_files(str(tmp_path)) == {"k": "second"}


def test_missing_directories_give_no_features(tmp_path):
    missing = str(tmp_path / "nope")
    assert features_from_files(missing) == {}
    assert features_from_hooks(missing) == {}


def test_features_from_hooks_skips_failing_hook(tmp_path):
    _script(tmp_path / "good", "echo ok\n")
    _script(tmp_path / "worse", "exit 1\n")
    assert features_from_hooks(str(tmp_path)) == {"good-ok": "true"}


def test_discover_hooks_override_files(tmp_path):
    hooks = tmp_path / "hooks"
    files = tmp_path / "files"
    hooks.mkdir()
    files.mkdir()
    (files / "a").write_text("x=1\ny=2\n")
    _script(hooks / "h", "echo '/a-x=hook'\n")
    source = LocalSource(hook_dir=str(hooks), features_dir=str(files))
    assert source.discover() == {"a-x": "hook", "a-y": "2"}
    assert source.config is None