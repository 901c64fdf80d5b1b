"""A feature source reporting configurable, made-up features."""

from __future__ import annotations

from dataclasses import dataclass, field

from .base import FeatureSource, Features


def _default_labels() -> dict[str, str]:
    return {
        "fakefeature1": "true",
        "fakefeature2": "true",
        "fakefeature3": "true",
    }


@dataclass
class FakeConfig:
    """Labels the fake source reports."""

    labels: dict[str, str] = field(default_factory=_default_labels)


class FakeSource(FeatureSource):
    """Reports the labels of its configuration as features."""

    name = "fake"
    config_type = FakeConfig

    def new_config(self) -> FakeConfig:
        return FakeConfig()

    def discover(self) -> Features:
        return dict(self.config.labels)