"""Common interface of all feature sources."""

from __future__ import annotations

import abc
from typing import Any, ClassVar, Dict

Features = Dict[str, Any]


class DiscoveryError(Exception):
    """Raised when features cannot be discovered."""


class FeatureSource(abc.ABC):
    """A source of discovered node features.

    Subclasses set ``name`` and, if they are configurable, ``config_type``.
    Sources without a configuration ignore any configuration given to them.
    """

    name: ClassVar[str] = ""
    config_type: ClassVar[type | None] = None

    def __init__(self, config: Any = None) -> None:
        self.config = self.new_config() if config is None else config

    @property
    def config(self) -> Any:
        """The effective configuration of the source."""
        return self._config

    @config.setter
    def config(self, value: Any) -> None:
        if self.config_type is None:
            self._config = None
            return
        if not isinstance(value, self.config_type):
            raise TypeError(f"invalid config type: {type(value).__name__}")
        self._config = value

    def new_config(self) -> Any:
        """Return a new default configuration of the source."""
        return self.config_type() if self.config_type is not None else None

    @abc.abstractmethod
    def discover(self) -> Features:
        """Return the features discovered on this node."""