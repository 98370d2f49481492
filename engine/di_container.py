"""Dependency injection container for groove engine components.

Provides centralized management of service instances with proper lifecycle
and dependency resolution.
"""

import logging
from typing import Any, Optional

from engine.config import GrooveConfig, get_config
from engine.metrics import SelectionMetrics
from groove.density import DensityPolicy
from groove.generator import GrooveGenerator
from groove.operators.registry import OperatorRegistry, build_default_registry

logger = logging.getLogger(__name__)


class DIContainer:
    """Dependency injection container for engine components."""

    def __init__(self, config: Optional[GrooveConfig] = None) -> None:
        """Initialize DI container."""
        self._config = config or get_config()
        self._instances: dict[str, Any] = {}

        logger.info("DI container initialized")

    def get_config(self) -> GrooveConfig:
        """Get configuration instance."""
        return self._config

    def get_operator_registry(self) -> OperatorRegistry:
        """Get or create the frozen operator registry."""
        if "operator_registry" not in self._instances:
            self._instances["operator_registry"] = build_default_registry()
        return self._instances["operator_registry"]

    def get_density_policy(self) -> DensityPolicy:
        """Get or create the density policy."""
        if "density_policy" not in self._instances:
            self._instances["density_policy"] = DensityPolicy.default()
        return self._instances["density_policy"]

    def get_groove_generator(self) -> GrooveGenerator:
        """Get or create the groove generator."""
        if "groove_generator" not in self._instances:
            self._instances["groove_generator"] = GrooveGenerator(
                registry=self.get_operator_registry(),
                density_policy=self.get_density_policy(),
                config=self._config,
                metrics=self.get_metrics(),
            )
        return self._instances["groove_generator"]

    def get_metrics(self) -> SelectionMetrics:
        """Get or create the selection metrics collector."""
        if "metrics" not in self._instances:
            self._instances["metrics"] = SelectionMetrics()
        return self._instances["metrics"]

    def cleanup(self) -> None:
        """Clean up all managed instances."""
        logger.info("Cleaning up DI container")
        self._instances.clear()
        logger.info("DI container cleaned up")


# Global container instance
_container: Optional[DIContainer] = None


def get_container() -> DIContainer:
    """Get the global DI container instance.

    Returns:
        DIContainer singleton
    """
    global _container
    if _container is None:
        _container = DIContainer()
    return _container


def cleanup_container() -> None:
    """Clean up the global DI container."""
    global _container
    if _container is not None:
        _container.cleanup()
        _container = None
