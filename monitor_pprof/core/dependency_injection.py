"""
Dependency Injection Container
Author: Drmusab
Last Modified: 2026-10-19 13:10:22 UTC

A small type-keyed container. Components are registered either as ready
instances or as factories that receive the container and are invoked once,
on first resolution.
"""

import threading
from enum import Enum
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from monitor_pprof.observability.logging.config import get_logger

T = TypeVar("T")
Factory = Callable[["Container"], T]

_MISSING = object()


class LifecycleScope(Enum):
    """Dependency lifecycle scopes."""

    SINGLETON = "singleton"  # Created once, reused
    TRANSIENT = "transient"  # Created on every resolution


class DependencyError(Exception):
    """Base exception for dependency injection errors."""

    def __init__(self, message: str, dependency_type: Optional[Type] = None):
        super().__init__(message)
        self.dependency_type = dependency_type


class MissingDependencyError(DependencyError):
    """Raised when a required dependency is not registered."""


class Container:
    """Type-keyed dependency injection container."""

    def __init__(self):
        self._instances: Dict[Type, Any] = {}
        self._factories: Dict[Type, Factory] = {}
        self._scopes: Dict[Type, LifecycleScope] = {}
        self._lock = threading.RLock()
        self.logger = get_logger(__name__)

    def register_instance(self, registered_type: Type[T], instance: T) -> "Container":
        with self._lock:
            self._instances[registered_type] = instance
            self._factories.pop(registered_type, None)
        return self

    def register_factory(
        self,
        registered_type: Type[T],
        factory: Factory,
        scope: LifecycleScope = LifecycleScope.SINGLETON,
    ) -> "Container":
        with self._lock:
            self._factories[registered_type] = factory
            self._scopes[registered_type] = scope
            self._instances.pop(registered_type, None)
        return self

    def is_registered(self, dependency_type: Type) -> bool:
        return dependency_type in self._instances or dependency_type in self._factories

    def get(self, dependency_type: Type[T], default: Any = _MISSING) -> T:
        """
        Resolve a dependency.

        Args:
            dependency_type: Registered type
            default: Returned when the type is not registered

        Returns:
            The registered instance or the factory's product
        """
        with self._lock:
            if dependency_type in self._instances:
                return self._instances[dependency_type]

            factory = self._factories.get(dependency_type)
            if factory is None:
                if default is not _MISSING:
                    return default
                raise MissingDependencyError(
                    f"No registration for {dependency_type.__name__}", dependency_type
                )

            instance = factory(self)
            if self._scopes.get(dependency_type) == LifecycleScope.SINGLETON:
                self._instances[dependency_type] = instance
                self.logger.debug(f"Created singleton {dependency_type.__name__}")
            return instance
