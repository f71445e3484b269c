"""Configuration management for the wavegate rollout."""

from .models import (
    ClusterConfig,
    TimeoutConfig,
    ControllerConfig,
    CredentialsConfig,
    RolloutConfig,
    DeployConfig,
)
from .parser import Config, ConfigValidationError

__all__ = [
    "ClusterConfig",
    "TimeoutConfig",
    "ControllerConfig",
    "CredentialsConfig",
    "RolloutConfig",
    "DeployConfig",
    "Config",
    "ConfigValidationError",
]
