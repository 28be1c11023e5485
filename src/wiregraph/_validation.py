"""Conformance checks between a contract and the things registered for it.

Only class contracts are checked. Plain classes and ABCs require subclassing;
`typing.Protocol` contracts are checked nominally first and structurally
otherwise (member presence, positional arity and return annotations).
"""

from __future__ import annotations

import inspect
import typing
from typing import Any, Protocol, cast, get_type_hints


if hasattr(typing, "is_protocol"):

    def is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def is_protocol(tp: object) -> bool:
        return (
            inspect.isclass(tp)
            and issubclass(tp, cast("type", Protocol))
            and bool(getattr(tp, "_is_protocol", False))
        )


def is_runtime_checkable(tp: object) -> bool:
    if not is_protocol(tp):
        return False
    try:
        isinstance(None, tp)
    except TypeError:
        return False
    return True


def check_impl(contract: object, impl: type) -> None:
    """Raise TypeError unless instances of `impl` can stand in for `contract`."""
    if not inspect.isclass(contract):
        return

    if not is_protocol(contract):
        if not issubclass(impl, contract):
            msg = f"Implementation {impl.__name__} must be a subclass of {contract.__name__}"
            raise TypeError(msg)
        return

    if contract in getattr(impl, "__mro__", ()):
        return
    _check_structure(contract, impl)


def check_instance(contract: object, instance: object) -> None:
    """Raise TypeError unless `instance` satisfies `contract`."""
    if not inspect.isclass(contract):
        return

    if not is_protocol(contract):
        if not isinstance(instance, contract):
            msg = f"{type(instance).__name__} instance is not an instance of {contract.__name__}"
            raise TypeError(msg)
        return

    check_impl(contract, type(instance))
    if is_runtime_checkable(contract) and not isinstance(instance, contract):
        msg = f"{type(instance).__name__} instance does not implement runtime protocol {contract.__name__}"
        raise TypeError(msg)


def _positional_arity(sig: inspect.Signature) -> int:
    return sum(
        1
        for p in sig.parameters.values()
        if p.name != "self"
        and p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and p.default is inspect.Parameter.empty
    )


def _returns_compatible(impl_ret: object, proto_ret: object) -> bool:
    if inspect.Signature.empty in (impl_ret, proto_ret) or Any in (impl_ret, proto_ret):
        return True
    if impl_ret == proto_ret:
        return True
    if isinstance(impl_ret, type) and isinstance(proto_ret, type):
        return issubclass(impl_ret, proto_ret)
    return False


def _check_structure(proto: type, impl: type) -> None:  # noqa: C901
    missing: list[str] = []
    mismatches: list[str] = []

    try:
        annotated = get_type_hints(proto)
    except (NameError, TypeError):
        annotated = {}

    for name in annotated:
        if not name.startswith("_") and not hasattr(impl, name):
            missing.append(name)

    for name, member in proto.__dict__.items():
        if name.startswith("_") or not inspect.isfunction(member):
            continue

        impl_member = getattr(impl, name, None)
        if impl_member is None:
            missing.append(name)
            continue
        if not callable(impl_member):
            mismatches.append(f"{name}: not callable on {impl.__name__}")
            continue

        try:
            proto_sig = inspect.signature(member)
            impl_sig = inspect.signature(impl_member)
        except (TypeError, ValueError) as e:
            mismatches.append(f"{name}: unable to compare signatures ({e})")
            continue

        wanted, offered = _positional_arity(proto_sig), _positional_arity(impl_sig)
        if offered < wanted:
            mismatches.append(f"{name}: takes {offered} required positional params, protocol needs {wanted}")

        if not _returns_compatible(impl_sig.return_annotation, proto_sig.return_annotation):
            mismatches.append(
                f"{name}: returns {impl_sig.return_annotation!r}, protocol declares {proto_sig.return_annotation!r}"
            )

    if missing or mismatches:
        details = []
        if missing:
            details.append(f"missing members: {', '.join(missing)}")
        if mismatches:
            details.append(f"signature mismatches: {', '.join(mismatches)}")
        msg = f"{impl.__name__} does not structurally conform to protocol {proto.__name__}: {'; '.join(details)}"
        raise TypeError(msg)
