"""Groove Engine runtime - configuration, logging, wiring and metrics.

This package holds the infrastructure around the selection core:
settings, structured logging, the exception hierarchy, the dependency
injection container and aggregated selection metrics.
"""

from engine.config import GrooveConfig, get_config, reset_config
from engine.exceptions import (
    ConfigurationError,
    GenerationError,
    GrooveError,
    InvalidInputError,
    OperatorExecutionError,
    RegistryError,
)

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "GrooveConfig",
    "get_config",
    "reset_config",
    # Errors
    "GrooveError",
    "InvalidInputError",
    "OperatorExecutionError",
    "RegistryError",
    "GenerationError",
    "ConfigurationError",
]
