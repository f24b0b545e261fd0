"""Settings implementation."""

import os
from typing import Mapping

from .base import BaseSettings

ENV_PREFIX = "ZKCRED_"

# Recognized keys and their defaults
DEFAULT_SETTINGS = {
    "protocol.version": 1,
    "holder.proof_timeout": None,
    "gadgets.cache_ttl": 3600,
    "gadgets.fetch_attempts": 5,
    "verifier.revocation_root_max_age": 0,
    "verifier.clock_skew": 0,
    "log.level": None,
    "log.config": None,
}


def env_name(key: str, prefix: str = ENV_PREFIX) -> str:
    """Environment variable name for a dotted settings key."""
    return prefix + key.upper().replace(".", "_")


class Settings(BaseSettings):
    """Mutable settings implementation."""

    def __init__(self, values: Mapping[str, object] = None):
        """Initialize a Settings object.

        Args:
            values: An optional dictionary of settings
        """
        self._values = {}
        if values:
            self._values.update(values)

    @classmethod
    def defaults(cls) -> "Settings":
        """Create a settings instance populated with the package defaults."""
        return cls(DEFAULT_SETTINGS)

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Mapping[str, str] = None,
        base: Mapping[str, object] = None,
    ) -> "Settings":
        """Create a settings instance with environment overrides applied.

        A key such as `holder.proof_timeout` is read from
        `ZKCRED_HOLDER_PROOF_TIMEOUT`. Values are kept as strings, the typed
        getters perform conversion.

        Args:
            prefix: The environment variable prefix
            environ: The environment mapping, `os.environ` by default
            base: Initial values, the package defaults by default
        """
        environ = os.environ if environ is None else environ
        settings = cls(DEFAULT_SETTINGS if base is None else base)
        for key in list(settings) + [k for k in DEFAULT_SETTINGS if k not in settings]:
            name = env_name(key, prefix)
            if name in environ:
                settings.set_value(key, environ[name])
        return settings

    def get_value(self, *var_names, default=None):
        """Fetch a setting.

        Args:
            var_names: A list of variable name alternatives
            default: The default value to return if none are defined
        """
        for k in var_names:
            if k in self._values:
                return self._values[k]
        return default

    def set_value(self, var_name: str, value):
        """Add a setting.

        Args:
            var_name: The name of the setting
            value: The value to assign
        """
        if not isinstance(var_name, str):
            raise TypeError("Setting name must be a string")
        if not var_name:
            raise ValueError("Setting name must be non-empty")
        self._values[var_name] = value

    def set_default(self, var_name: str, value):
        """Add a setting if not currently defined.

        Args:
            var_name: The name of the setting
            value: The value to assign
        """
        if var_name not in self:
            self.set_value(var_name, value)

    def clear_value(self, var_name: str):
        """Remove a setting.

        Args:
            var_name: The name of the setting
        """
        if var_name in self._values:
            del self._values[var_name]

    def __contains__(self, index):
        """Define 'in' operator."""
        return index in self._values

    def __iter__(self):
        """Iterate settings keys."""
        return iter(self._values)

    def __setitem__(self, index, value):
        """Implement update operator for array index."""
        self.set_value(index, value)

    def __delitem__(self, index):
        """Implement del operator for array index."""
        self.clear_value(index)

    def __len__(self):
        """Fetch the length of the mapping."""
        return len(self._values)

    def __bool__(self):
        """Convert settings to a boolean."""
        return True

    def copy(self) -> BaseSettings:
        """Produce a copy of the settings instance."""
        return Settings(self._values)

    def extend(self, other: Mapping[str, object]) -> BaseSettings:
        """Merge another settings instance to produce a new instance."""
        vals = self._values.copy()
        vals.update(other)
        return Settings(vals)

    def update(self, other: Mapping[str, object]):
        """Update the settings in place."""
        self._values.update(other)
