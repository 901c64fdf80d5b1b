"""Features reported by local hook programs and feature files."""

from __future__ import annotations

import logging
import os
import stat
import subprocess
from pathlib import Path

from .base import DiscoveryError, FeatureSource, Features

log = logging.getLogger(__name__)

FEATURE_FILES_DIR = "/etc/kubernetes/node-feature-discovery/features.d/"
HOOK_DIR = "/etc/kubernetes/node-feature-discovery/source.d/"


def parse_features(lines: list[str], prefix: str) -> Features:
    """Parse ``key[=value]`` lines into features.

    Keys without a ``/`` get ``prefix`` and a dash prepended; a leading
    ``/`` is removed. A key without a value maps to ``"true"``.
    """
    features: Features = {}
    for line in lines:
        if not line:
            continue
        key, sep, value = line.partition("=")
        if "/" in key:
            key = key[1:] if key.startswith("/") else key
        else:
            key = f"{prefix}-{key}"
        features[key] = value if sep else "true"
    return features


def _is_regular(path: str) -> bool:
    try:
        mode = os.stat(path).st_mode
    except OSError as err:
        log.error("skipping %s, failed to get stat: %s", path, err)
        raise DiscoveryError(f"failed to get stat of {path}: {err}") from err
    return stat.S_ISREG(mode)


def _split_lines(data: bytes) -> list[str]:
    return data.decode("utf-8", errors="replace").split("\n")


def run_hook(hook_dir: str, name: str) -> list[str]:
    """Run one hook program and return the lines of its output.

    Anything that is not a regular file yields no lines. The program's
    stderr is forwarded to the log. Raises DiscoveryError if the hook
    cannot be run or exits unsuccessfully.
    """
    path = os.path.join(hook_dir, name)
    if not _is_regular(path):
        return []

    try:
        result = subprocess.run([path], capture_output=True, check=False)
    except OSError as err:
        raise DiscoveryError(f"failed to run {path}: {err}") from err

    err_lines = result.stderr.split(b"\n")
    if err_lines and not err_lines[-1]:
        err_lines.pop()
    for line in err_lines:
        log.error("%s: %s", name, line.decode("utf-8", errors="replace"))

    if result.returncode != 0:
        raise DiscoveryError(f"{path} exited with status {result.returncode}")
    return _split_lines(result.stdout)


def read_feature_file(files_dir: str, name: str) -> list[str]:
    """Return the lines of one feature file.

    Anything that is not a regular file yields no lines. Raises
    DiscoveryError if the file cannot be read.
    """
    path = os.path.join(files_dir, name)
    if not _is_regular(path):
        return []
    try:
        return _split_lines(Path(path).read_bytes())
    except OSError as err:
        raise DiscoveryError(f"failed to read {path}: {err}") from err


def _collect(directory: str, reader, what: str, action: str) -> Features:
    try:
        names = sorted(os.listdir(directory))
    except FileNotFoundError:
        log.info("%s directory %s does not exist", what, directory)
        return {}
    except OSError as err:
        raise DiscoveryError(f"unable to access {directory}: {err}") from err

    features: Features = {}
    for name in names:
        try:
            lines = reader(directory, name)
        except DiscoveryError as err:
            log.error("source local failed %s '%s': %s", action, name, err)
            continue
        for key, value in parse_features(lines, name).items():
            if key in features:
                log.warning(
                    "overriding label '%s' from another %s (%s): value changed from '%s' to '%s'",
                    key,
                    what,
                    name,
                    features[key],
                    value,
                )
            features[key] = value
    return features


def features_from_hooks(hook_dir: str = HOOK_DIR) -> Features:
    """Run all hooks of ``hook_dir`` and merge the features they report."""
    return _collect(hook_dir, run_hook, "hook", "running hook")


def features_from_files(files_dir: str = FEATURE_FILES_DIR) -> Features:
    """Read all feature files of ``files_dir`` and merge their features."""
    return _collect(files_dir, read_feature_file, "features.d file", "reading file")


class LocalSource(FeatureSource):
    """Discovers features from local hooks and feature files."""

    name = "local"

    def __init__(
        self,
        config: object = None,
        hook_dir: str = HOOK_DIR,
        features_dir: str = FEATURE_FILES_DIR,
    ) -> None:
        self.hook_dir = hook_dir
        self.features_dir = features_dir
        super().__init__(config)

    def discover(self) -> Features:
        try:
            from_hooks = features_from_hooks(self.hook_dir)
        except DiscoveryError as err:
            log.error("%s", err)
            from_hooks = {}

        try:
            features = features_from_files(self.features_dir)
        except DiscoveryError as err:
            log.error("%s", err)
            features = {}

        for key, value in from_hooks.items():
            if key in features:
                log.warning(
                    "overriding label '%s': value changed from '%s' to '%s'",
                    key,
                    features[key],
                    value,
                )
            features[key] = value
        return features