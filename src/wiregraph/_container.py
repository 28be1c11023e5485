from __future__ import annotations

import inspect
import logging
import threading
from typing import TYPE_CHECKING, Any, TypeVar, overload

from ._cache import MISSING, InstanceCache
from ._descriptors import (
    DEFAULT_QUALIFIER,
    Dependency,
    DescriptorStore,
    Lifetime,
    ServiceDescriptor,
    ServiceKey,
)
from ._errors import (
    AmbiguousBindingError,
    CircularDependencyError,
    ConstructionError,
    ResolutionError,
    UnregisteredServiceError,
)
from ._validation import check_impl, check_instance


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    T = TypeVar("T")

    Token = type[T] | str


class ResolutionFrame:
    """Keys currently being resolved on one thread, outermost first."""

    def __init__(self) -> None:
        self._chain: list[ServiceKey] = []
        self._active: set[ServiceKey] = set()

    @property
    def path(self) -> tuple[ServiceKey, ...]:
        return tuple(self._chain)

    def push(self, key: ServiceKey) -> None:
        if key in self._active:
            start = self._chain.index(key)
            raise CircularDependencyError([*self._chain[start:], key])
        self._chain.append(key)
        self._active.add(key)

    def pop(self, key: ServiceKey) -> None:
        self._chain.pop()
        self._active.discard(key)

    def __len__(self) -> int:
        return len(self._chain)


class Container:
    """Minimal thread-safe DI container.

    - register implementation types with an explicit, ordered dependency list
    - register zero-argument factories or pre-built instances
    - qualifiers tell apart several registrations of one contract
    - lifetimes: singleton / transient
    - circular dependencies are reported instead of recursing forever.
    """

    def __init__(self) -> None:
        self._store = DescriptorStore()
        self._cache = InstanceCache()
        self._frames = threading.local()

    def register(
        self,
        contract: Token[T],
        impl: type,
        *,
        dependencies: Iterable[Any] = (),
        lifetime: Lifetime = Lifetime.SINGLETON,
        qualifier: str = DEFAULT_QUALIFIER,
        constructor: Callable[..., object] | None = None,
    ) -> None:
        """Register an implementation type for a contract.

        Each entry of `dependencies` is a contract or a `Dependency(contract, qualifier)`;
        they are resolved in order and passed positionally to `constructor`
        (the implementation class itself unless another callable is nominated).

        Example:
          container.register(Logger, ConsoleLogger)
          container.register(Repository, SqlRepository, dependencies=[Logger])
          container.register(Gateway, StripeGateway, qualifier="stripe", lifetime=Lifetime.TRANSIENT)

        """
        if not inspect.isclass(impl):
            msg = f"`impl` must be a class, got {impl!r}. Use register_factory() for callables."
            raise TypeError(msg)
        if constructor is not None and not callable(constructor):
            msg = f"`constructor` must be callable, got {constructor!r}"
            raise TypeError(msg)

        check_impl(contract, impl)

        self._add(
            ServiceDescriptor(
                key=_checked_key(contract, qualifier),
                lifetime=Lifetime(lifetime),
                impl=impl,
                constructor=constructor,
                dependencies=tuple(_as_dependency(dep) for dep in dependencies),
            )
        )

    def register_factory(
        self,
        contract: Token[T],
        factory: Callable[[], object],
        *,
        lifetime: Lifetime = Lifetime.SINGLETON,
        qualifier: str = DEFAULT_QUALIFIER,
    ) -> None:
        """Register a zero-argument factory for a contract.

        The container calls it as-is and never looks inside; a factory that needs
        other services may close over the container and resolve them itself.
        """
        if not callable(factory):
            msg = f"`factory` must be callable, got {factory!r}"
            raise TypeError(msg)

        self._add(
            ServiceDescriptor(
                key=_checked_key(contract, qualifier),
                lifetime=Lifetime(lifetime),
                factory=factory,
            )
        )

    def register_instance(
        self,
        contract: Token[T],
        instance: object,
        *,
        qualifier: str = DEFAULT_QUALIFIER,
    ) -> None:
        """Register a pre-built instance (always singleton)."""
        check_instance(contract, instance)

        self._add(
            ServiceDescriptor(
                key=_checked_key(contract, qualifier),
                lifetime=Lifetime.SINGLETON,
                instance=instance,
            )
        )

    @overload
    def resolve(self, contract: type[T], qualifier: str = ...) -> T: ...

    @overload
    def resolve(self, contract: str, qualifier: str = ...) -> object: ...

    def resolve(self, contract: Token[T], qualifier: str = DEFAULT_QUALIFIER) -> object:
        """Build or fetch the service registered for `contract` (and `qualifier`).

        Raises one of:
        - UnregisteredServiceError: nothing registered for the key.
        - AmbiguousBindingError: several qualified registrations and no qualifier.
        - CircularDependencyError: the dependency graph loops back on itself.
        - ConstructionError: a constructor or factory raised.
        """
        frame = getattr(self._frames, "active", None)
        if frame is not None:
            # reentrant call, e.g. from a factory resolving its own collaborators
            return self._resolve(frame, ServiceKey(contract, qualifier))

        frame = self._frames.active = ResolutionFrame()
        try:
            return self._resolve(frame, ServiceKey(contract, qualifier))
        finally:
            del self._frames.active

    def is_registered(self, contract: Token[T], qualifier: str | None = None) -> bool:
        """Whether `contract` has a registration; `qualifier=None` accepts any."""
        if qualifier is None:
            return bool(self._store.qualifiers(contract))
        return self._store.lookup(contract, qualifier) is not None

    def qualifiers(self, contract: Token[T]) -> tuple[str, ...]:
        """Qualifiers registered for `contract` ("" is the unqualified registration)."""
        return self._store.qualifiers(contract)

    def reset(self) -> None:
        """Forget every registration and every cached singleton."""
        self._store.clear()
        self._cache.clear()
        logger.debug("Container reset")

    def _add(self, descriptor: ServiceDescriptor) -> None:
        previous = self._store.add(descriptor)
        if previous is not None and self._cache.evict(previous.key):
            logger.warning("Re-registered %s after its singleton was built; the old instance is dropped", previous.key)
        logger.debug("Registered %s (%s)", descriptor.key, descriptor.lifetime.value)

    def _select(self, frame: ResolutionFrame, requested: ServiceKey) -> ServiceDescriptor:
        found = self._store.select(requested.contract, requested.qualifier)
        if found.ambiguous:
            raise AmbiguousBindingError(requested, found.candidates, frame.path)
        if found.descriptor is None:
            raise UnregisteredServiceError(requested, frame.path)
        return found.descriptor

    def _resolve(self, frame: ResolutionFrame, requested: ServiceKey) -> object:
        descriptor = self._select(frame, requested)
        key = descriptor.key

        frame.push(key)
        try:
            if descriptor.lifetime is Lifetime.SINGLETON:
                instance = self._cache.get(descriptor)
                if instance is not MISSING:
                    return instance

            args = [self._resolve(frame, dep.key) for dep in descriptor.dependencies]

            if descriptor.lifetime is Lifetime.SINGLETON:
                return self._cache.get_or_create(descriptor, lambda: self._build(frame, descriptor, args))
            return self._build(frame, descriptor, args)
        finally:
            frame.pop(key)

    def _build(self, frame: ResolutionFrame, descriptor: ServiceDescriptor, args: list[object]) -> object:
        try:
            instance = descriptor.create(*args)
        except ResolutionError:
            raise
        except Exception as e:
            raise ConstructionError(descriptor.key, frame.path, e) from e

        if descriptor.factory is not None:
            try:
                check_instance(descriptor.contract, instance)
            except TypeError as e:
                raise ConstructionError(descriptor.key, frame.path, e) from e

        return instance


def _checked_key(contract: object, qualifier: str) -> ServiceKey:
    if not isinstance(qualifier, str):
        msg = f"Qualifier must be a string, got {type(qualifier).__name__}"
        raise TypeError(msg)
    try:
        hash(contract)
    except TypeError as e:
        msg = f"Contract {contract!r} is not hashable"
        raise TypeError(msg) from e
    return ServiceKey(contract, qualifier)


def _as_dependency(entry: Any) -> Dependency:
    if isinstance(entry, tuple):
        msg = f"Use Dependency(contract, qualifier) instead of a tuple in `dependencies`: {entry!r}"
        raise TypeError(msg)
    if not isinstance(entry, Dependency):
        entry = Dependency(entry)
    _checked_key(entry.contract, entry.qualifier)
    return entry
