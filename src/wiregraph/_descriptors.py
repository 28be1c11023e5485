from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, NamedTuple

from ._locks import ReadWriteLock


if TYPE_CHECKING:
    from collections.abc import Callable


logger = logging.getLogger(__name__)

DEFAULT_QUALIFIER = ""


class Lifetime(Enum):
    SINGLETON = "singleton"
    TRANSIENT = "transient"


class ServiceKey(NamedTuple):
    contract: Any
    qualifier: str = DEFAULT_QUALIFIER

    def __str__(self) -> str:
        name = getattr(self.contract, "__qualname__", None) or repr(self.contract)
        if self.qualifier:
            return f"{name}[{self.qualifier!r}]"
        return name


@dataclass(frozen=True)
class Dependency:
    """A constructor argument: a contract, optionally narrowed by a qualifier."""

    contract: Any
    qualifier: str = DEFAULT_QUALIFIER

    @property
    def key(self) -> ServiceKey:
        return ServiceKey(self.contract, self.qualifier)


@dataclass(frozen=True, eq=False)
class ServiceDescriptor:
    """How to produce the service registered under `key`.

    Exactly one of `impl`, `factory` or `instance` is the production strategy.
    Descriptors compare by identity: re-registering a key creates a new one.
    """

    key: ServiceKey
    lifetime: Lifetime
    impl: type | None = None
    factory: Callable[[], object] | None = None
    instance: object | None = None
    constructor: Callable[..., object] | None = None
    dependencies: tuple[Dependency, ...] = field(default_factory=tuple)

    @property
    def contract(self) -> Any:
        return self.key.contract

    @property
    def qualifier(self) -> str:
        return self.key.qualifier

    def create(self, *args: object) -> object:
        """Invoke the production strategy with already-resolved dependencies."""
        if self.factory is not None:
            return self.factory()
        if self.impl is not None:
            build = self.constructor or self.impl
            return build(*args)
        return self.instance


class Lookup(NamedTuple):
    """Outcome of a store selection: a descriptor, or the competing qualifiers."""

    descriptor: ServiceDescriptor | None
    candidates: tuple[str, ...] = ()

    @property
    def ambiguous(self) -> bool:
        return self.descriptor is None and len(self.candidates) > 1


class DescriptorStore:
    """Descriptors indexed by contract, then by qualifier.

    Reads (`lookup`, `select`, `qualifiers`) share the lock; writes are exclusive.
    """

    def __init__(self) -> None:
        self._index: dict[Any, dict[str, ServiceDescriptor]] = {}
        self._lock = ReadWriteLock()

    def add(self, descriptor: ServiceDescriptor) -> ServiceDescriptor | None:
        """Store `descriptor`, returning the one it replaced (last registration wins)."""
        key = descriptor.key
        with self._lock.write():
            by_qualifier = self._index.setdefault(key.contract, {})
            previous = by_qualifier.get(key.qualifier)
            by_qualifier[key.qualifier] = descriptor

        if previous is not None:
            logger.debug("Registration for %s replaced", key)
        return previous

    def lookup(self, contract: Any, qualifier: str = DEFAULT_QUALIFIER) -> ServiceDescriptor | None:
        """Exact (contract, qualifier) match, or None."""
        with self._lock.read():
            return self._index.get(contract, {}).get(qualifier)

    def select(self, contract: Any, qualifier: str = DEFAULT_QUALIFIER) -> Lookup:
        """Pick the descriptor a `resolve(contract, qualifier)` call should use.

        A non-empty qualifier requires an exact match. Without one, the
        unqualified registration wins; failing that, a lone qualified
        registration is the implicit default, and several are ambiguous.
        """
        with self._lock.read():
            by_qualifier = self._index.get(contract)
            if not by_qualifier:
                return Lookup(None)

            descriptor = by_qualifier.get(qualifier)
            if descriptor is not None or qualifier != DEFAULT_QUALIFIER:
                return Lookup(descriptor)

            if len(by_qualifier) == 1:
                (descriptor,) = by_qualifier.values()
                return Lookup(descriptor)

            return Lookup(None, tuple(sorted(by_qualifier)))

    def qualifiers(self, contract: Any) -> tuple[str, ...]:
        with self._lock.read():
            return tuple(sorted(self._index.get(contract, ())))

    def clear(self) -> None:
        with self._lock.write():
            self._index.clear()
