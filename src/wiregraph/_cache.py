from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Final

from ._errors import CircularDependencyError


if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from ._descriptors import ServiceDescriptor, ServiceKey


logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()


class InstanceCache:
    """Singleton instances built so far, one per registered key.

    An entry remembers the descriptor that produced it and is only served for
    that same descriptor, so re-registering a key never hands out an instance
    built from the old registration.

    Construction of each key runs under its own lock. The cache records which
    thread holds each key lock and which key each blocked thread waits for, so
    a construction cycle spread over several threads is reported instead of
    deadlocking.
    """

    def __init__(self) -> None:
        self._entries: dict[ServiceKey, tuple[ServiceDescriptor, object]] = {}
        self._key_locks: dict[ServiceKey, threading.RLock] = {}
        self._owners: dict[ServiceKey, tuple[int, int]] = {}
        self._waiting: dict[int, ServiceKey] = {}
        self._guard = threading.Lock()

    def get(self, descriptor: ServiceDescriptor) -> object:
        """Return the cached instance for `descriptor`, or `MISSING`."""
        entry = self._entries.get(descriptor.key)
        if entry is not None and entry[0] is descriptor:
            return entry[1]
        return MISSING

    def get_or_create(self, descriptor: ServiceDescriptor, build: Callable[[], object]) -> object:
        """Return the cached instance, calling `build` at most once per descriptor.

        Concurrent callers for the same key wait for the first one to finish.
        If `build` raises, nothing is stored and a later call builds again.
        Raises CircularDependencyError when waiting would close a cycle of
        threads each blocked on a key another one is building.
        """
        instance = self.get(descriptor)
        if instance is not MISSING:
            return instance

        with self._construction(descriptor.key):
            instance = self.get(descriptor)
            if instance is not MISSING:
                return instance

            instance = build()
            with self._guard:
                self._entries[descriptor.key] = (descriptor, instance)

        logger.debug("Singleton %s created (%s)", descriptor.key, type(instance).__name__)
        return instance

    def evict(self, key: ServiceKey) -> bool:
        with self._guard:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        # key locks outlive clear(): a build still running elsewhere must keep
        # excluding builds of the same key registered after the reset
        with self._guard:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @contextmanager
    def _construction(self, key: ServiceKey) -> Iterator[None]:
        me = threading.get_ident()
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.RLock()
            cycle = self._wait_cycle(key, me)
            if cycle:
                raise CircularDependencyError(cycle)
            self._waiting[me] = key

        try:
            lock.acquire()
        finally:
            with self._guard:
                del self._waiting[me]

        try:
            with self._guard:
                _, depth = self._owners.get(key, (me, 0))
                self._owners[key] = (me, depth + 1)
            yield
        finally:
            with self._guard:
                owner, depth = self._owners[key]
                if depth > 1:
                    self._owners[key] = (owner, depth - 1)
                else:
                    del self._owners[key]
            lock.release()

    def _wait_cycle(self, key: ServiceKey, me: int) -> list[ServiceKey]:
        """Keys forming a wait cycle back to `me` if it blocked on `key`, else []."""
        chain = [key]
        seen = {key}
        owner = self._owners.get(key)
        while owner is not None and owner[0] != me:
            wanted = self._waiting.get(owner[0])
            if wanted is None or wanted in seen:
                return []
            chain.append(wanted)
            seen.add(wanted)
            owner = self._owners.get(wanted)
        if owner is None:
            return []
        # `me` holds the last key in the chain and now asks for the first one
        return [chain[-1], *chain]
