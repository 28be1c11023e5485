"""Thread-safe dependency injection with explicit wiring.

This package provides a small dependency injection container for Python.
Services are registered against a contract (usually an ABC or Protocol) with
an explicit dependency list, a factory, or a pre-built instance, and resolved
into fully-wired object graphs.

Exports:
- `Container`: registration and recursive resolution of services.
- `Lifetime`: singleton (one cached instance) or transient (new per resolve).
- `Dependency`: a qualified entry in an implementation's dependency list.
- `ResolutionError` and its subclasses `UnregisteredServiceError`,
  `AmbiguousBindingError`, `CircularDependencyError` and `ConstructionError`.
"""

from ._container import Container
from ._descriptors import Dependency, Lifetime, ServiceKey
from ._errors import (
    AmbiguousBindingError,
    CircularDependencyError,
    ConstructionError,
    ResolutionError,
    UnregisteredServiceError,
)


__all__ = [
    "AmbiguousBindingError",
    "CircularDependencyError",
    "ConstructionError",
    "Container",
    "Dependency",
    "Lifetime",
    "ResolutionError",
    "ServiceKey",
    "UnregisteredServiceError",
]
