from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Sequence

    from ._descriptors import ServiceKey


def _format_path(path: Sequence[ServiceKey]) -> str:
    return " -> ".join(str(key) for key in path)


class ResolutionError(RuntimeError):
    """Base class for every failure raised while resolving a contract."""

    def __init__(self, msg: str, *, key: ServiceKey, path: Sequence[ServiceKey] = ()) -> None:
        super().__init__(msg)
        self.key = key
        self.path = tuple(path)


class UnregisteredServiceError(ResolutionError):
    def __init__(self, key: ServiceKey, path: Sequence[ServiceKey] = ()) -> None:
        msg = f"No registration found for {key}"
        if path:
            msg += f" (required by {_format_path(path)})"
        super().__init__(msg, key=key, path=path)


class AmbiguousBindingError(ResolutionError):
    def __init__(self, key: ServiceKey, qualifiers: Sequence[str], path: Sequence[ServiceKey] = ()) -> None:
        self.qualifiers = tuple(qualifiers)
        msg = (
            f"Multiple registrations for {key} and no qualifier given; "
            f"choose one of: {', '.join(repr(q) for q in self.qualifiers)}"
        )
        if path:
            msg += f" (required by {_format_path(path)})"
        super().__init__(msg, key=key, path=path)


class CircularDependencyError(ResolutionError):
    def __init__(self, cycle: Sequence[ServiceKey]) -> None:
        self.cycle = tuple(cycle)
        msg = f"Circular dependency detected: {_format_path(self.cycle)}"
        super().__init__(msg, key=self.cycle[-1], path=self.cycle)


class ConstructionError(ResolutionError):
    """The factory or constructor of `key` raised; the original error is `__cause__`."""

    def __init__(self, key: ServiceKey, path: Sequence[ServiceKey], cause: BaseException) -> None:
        msg = f"Failed to construct {key}: {type(cause).__name__}: {cause}"
        if len(path) > 1:
            msg += f" (while resolving {_format_path(path)})"
        super().__init__(msg, key=key, path=path)
