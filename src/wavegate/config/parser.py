"""YAML configuration loader with environment and command-line overrides."""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from .models import DeployConfig


DEFAULT_CONFIG_FILE = "wavegate.yaml"

# Environment variables honoured for compatibility with the shell workflow
ENV_OVERRIDES = {
    "MINIKUBE_PROFILE": ("cluster", "profile"),
    "MINIKUBE_CPUS": ("cluster", "cpus"),
    "MINIKUBE_MEMORY": ("cluster", "memory"),
    "MINIKUBE_DRIVER": ("cluster", "driver"),
    "REPO_URL": ("rollout", "repo_url"),
    "CLEANUP_ON_ERROR": ("rollout", "cleanup_on_error"),
    "SKIP_VERIFY": ("rollout", "skip_verify"),
}


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  • {location}: {msg}")

        return "\n".join(error_lines)


class Config:
    """Configuration manager for the rollout.

    Values are layered: built-in defaults, then the YAML file (if any), then
    environment variables, then explicit overrides from the command line.
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to a YAML configuration file; None uses
                wavegate.yaml when it exists and defaults otherwise
        """
        self.config_path = Path(config_path) if config_path else None
        self.data: Dict[str, Any] = {}
        self.settings: Optional[DeployConfig] = None

    def load(
        self,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Dict[str, Dict[str, Any]]] = None
    ) -> "Config":
        """Load and validate configuration.

        Args:
            environ: Environment mapping (defaults to os.environ)
            overrides: Section -> field -> value overrides; None values are ignored

        Returns:
            Self for method chaining

        Raises:
            ConfigValidationError: If configuration is invalid
            FileNotFoundError: If an explicitly given file doesn't exist
        """
        self.data = self._read_file()
        self._apply_environment(os.environ if environ is None else environ)
        self._apply_overrides(overrides or {})

        try:
            self.settings = DeployConfig(**self.data)
        except ValidationError as e:
            errors = [{"loc": list(error["loc"]), "msg": error["msg"]} for error in e.errors()]
            raise ConfigValidationError(
                f"Configuration validation failed with {len(errors)} error(s)",
                errors,
            )

        return self

    def _read_file(self) -> Dict[str, Any]:
        """Read the YAML file, if one applies."""
        path = self.config_path
        if path is None:
            default = Path(DEFAULT_CONFIG_FILE)
            if not default.exists():
                return {}
            path = default

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(data, dict):
            raise ConfigValidationError(
                "Configuration root must be a mapping",
                [{"loc": [], "msg": f"got {type(data).__name__}"}],
            )

        # A section holding only comments loads as None
        for section, values in data.items():
            if values is None:
                data[section] = {}
            elif not isinstance(values, dict):
                raise ConfigValidationError(
                    f"Configuration section '{section}' must be a mapping",
                    [{"loc": [section], "msg": f"got {type(values).__name__}"}],
                )
        return data

    def _apply_environment(self, environ: Mapping[str, str]):
        """Layer environment variable overrides onto the loaded data."""
        for variable, (section, key) in ENV_OVERRIDES.items():
            value = environ.get(variable)
            if value:
                self.data.setdefault(section, {})[key] = value

    def _apply_overrides(self, overrides: Dict[str, Dict[str, Any]]):
        """Layer explicit overrides; unset (None) values leave lower layers intact."""
        for section, values in overrides.items():
            for key, value in values.items():
                if value is not None:
                    self.data.setdefault(section, {})[key] = value
