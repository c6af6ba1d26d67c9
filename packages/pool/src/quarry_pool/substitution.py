"""Environment variable substitution for configuration values."""

import os
import re
from typing import Any, Dict, List, Union

from .exceptions import ConfigError


class VariableSubstitution:
    """Handles environment variable substitution in configuration values.

    Supports patterns:
    - ${VAR} - Replace with environment variable VAR, error if not found
    - ${VAR:default} - Replace with VAR or use default if not found
    - ${VAR:-default} - Same as above (bash-style)

    A value made of a single reference is converted to int, float or bool when
    it looks like one, so ``max_size: ${POOL_SIZE:20}`` yields an integer.
    """

    VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::(-)?([^}]*))?\}")

    def __init__(self, environ: Dict[str, str] | None = None):
        self.environ = os.environ if environ is None else environ

    def substitute(self, value: Any) -> Any:
        """Recursively substitute environment variables in a value.

        Args:
            value: Value to process (can be string, dict, list, or other)

        Returns:
            Value with environment variables substituted

        Raises:
            ConfigError: If a required environment variable is not set
        """
        if isinstance(value, str):
            return self._substitute_string(value)
        elif isinstance(value, dict):
            # keys are left alone
            return {key: self.substitute(item) for key, item in value.items()}
        elif isinstance(value, list):
            return [self.substitute(item) for item in value]
        return value

    def _lookup(self, match: re.Match) -> str:
        var_name = match.group(1)
        if var_name in self.environ:
            return self.environ[var_name]
        if match.group(2) is not None or match.group(3) is not None:
            return match.group(3) or ""
        raise ConfigError(
            f"Environment variable '{var_name}' not found",
            context={"variable": var_name},
        )

    def _substitute_string(self, text: str) -> Union[str, int, float, bool]:
        match = self.VAR_PATTERN.fullmatch(text)
        if match:
            return self._convert_type(self._lookup(match))
        return self.VAR_PATTERN.sub(self._lookup, text)

    def _convert_type(self, value: str) -> Union[str, int, float, bool]:
        if value.lower() in ("true", "yes"):
            return True
        elif value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def has_variables(self, value: Any) -> bool:
        """Check if a value contains environment variable references."""
        if isinstance(value, str):
            return bool(self.VAR_PATTERN.search(value))
        elif isinstance(value, dict):
            return any(self.has_variables(v) for v in value.values())
        elif isinstance(value, list):
            return any(self.has_variables(item) for item in value)
        return False


__all__ = ["VariableSubstitution"]
