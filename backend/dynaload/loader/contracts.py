"""Capability contracts.

A capability contract is a class (usually a ``typing.Protocol``) exposing
exactly one public operation. Its parameter list is what callers must supply
and what every discovered module has to accept. Contracts are referenced by
the class itself, by a short name registered with ``@capability``, or by an
import path (``package.module:QualName``).
"""
from __future__ import annotations

import importlib
import inspect
import logging
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from dynaload.core.errors import ContractError, ContractViolationError
from dynaload.loader.state import ANY, ContractSignature, Parameter

_log = logging.getLogger(__name__)

_SKIP_BASES = (object, typing.Protocol, typing.Generic)
_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


@dataclass(frozen=True)
class CapabilityDefinition:
    name: str
    contract: type
    pattern: Optional[str] = None


class _CapabilityRegistry:
    def __init__(self):
        self._defs: Dict[str, CapabilityDefinition] = {}

    def register(self, definition: CapabilityDefinition) -> None:
        existing = self._defs.get(definition.name)
        if existing and existing.contract is not definition.contract:
            raise ValueError(f"Capability already registered: {definition.name}")
        self._defs[definition.name] = definition

    def get(self, name: str) -> CapabilityDefinition | None:
        return self._defs.get(name)

    def for_contract(self, contract: type) -> CapabilityDefinition | None:
        for definition in self._defs.values():
            if definition.contract is contract:
                return definition
        return None

    def list(self) -> List[CapabilityDefinition]:
        return sorted(self._defs.values(), key=lambda d: d.name)

    def unregister(self, name: str) -> None:
        self._defs.pop(name, None)


capability_registry = _CapabilityRegistry()


def capability(*, name: str | None = None, pattern: str | None = None) -> Callable[[type], type]:
    """Class decorator registering a contract under a short name.

    ``pattern`` is the file pattern used when a loader call names this
    contract but no explicit pattern.
    """
    def wrapper(cls: type) -> type:
        capability_registry.register(CapabilityDefinition(name=name or cls.__name__, contract=cls, pattern=pattern))
        return cls
    return wrapper


def _import_contract(path: str) -> Any:
    if ':' in path:
        module_name, _, qualname = path.partition(':')
    else:
        module_name, _, qualname = path.rpartition('.')
    if not module_name or not qualname:
        raise ContractError(f"unknown contract '{path}'")
    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ContractError(f"unknown contract '{path}': {e}") from e
    for attr in qualname.split('.'):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            raise ContractError(f"unknown contract '{path}'") from e
    return obj


def resolve_contract(identifier: Any) -> type:
    if isinstance(identifier, str):
        text = identifier.strip()
        if not text:
            raise ContractError("contract identifier is empty")
        registered = capability_registry.get(text)
        target = registered.contract if registered else _import_contract(text)
    else:
        target = identifier
    if not inspect.isclass(target):
        raise ContractError(f"contract {identifier!r} is not a class")
    return target


def contract_identifier(contract: type) -> str:
    registered = capability_registry.for_contract(contract)
    if registered:
        return registered.name
    return f"{contract.__module__}:{contract.__qualname__}"


def default_pattern(identifier: Any) -> Optional[str]:
    registered = capability_registry.for_contract(resolve_contract(identifier))
    return registered.pattern if registered else None


def _public_operations(contract: type) -> Dict[str, Any]:
    found: Dict[str, Any] = {}
    for base in contract.__mro__:
        if base in _SKIP_BASES:
            continue
        for name, member in vars(base).items():
            if name in found:
                continue
            if name.startswith('_') and name != '__call__':
                continue
            if isinstance(member, (staticmethod, classmethod)):
                found[name] = member
            elif inspect.isfunction(member):
                found[name] = member
    return found


def _signature_parameters(contract: type, name: str, member: Any) -> tuple[Parameter, ...]:
    func = member.__func__ if isinstance(member, (staticmethod, classmethod)) else member
    try:
        hints = typing.get_type_hints(func)
    except Exception as e:  # unresolved forward references and the like
        raise ContractError(f"cannot resolve annotations of {contract.__qualname__}.{name}: {e}") from e
    params = list(inspect.signature(func).parameters.values())
    if not isinstance(member, staticmethod) and params:
        params = params[1:]  # self / cls

    result: list[Parameter] = []
    for p in params:
        if p.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        if p.kind not in _POSITIONAL:
            if p.default is inspect.Parameter.empty:
                raise ContractError(
                    f"{contract.__qualname__}.{name}: keyword-only parameter '{p.name}' cannot be bound positionally"
                )
            continue
        hint = hints.get(p.name, ANY)
        if hint is typing.Any:
            hint = ANY
        if hint is not ANY and not inspect.isclass(hint):
            raise ContractError(
                f"{contract.__qualname__}.{name}: unsupported annotation {hint!r} for '{p.name}'"
            )
        result.append(Parameter(name=p.name, annotation=hint))
    return tuple(result)


_SIGNATURES: Dict[type, ContractSignature] = {}


def inspect_contract(identifier: Any) -> ContractSignature:
    """Derive the ordered (name, type) signature of a contract's single operation."""
    contract = resolve_contract(identifier)
    cached = _SIGNATURES.get(contract)
    if cached is not None:
        return cached

    operations = _public_operations(contract)
    if len(operations) != 1:
        raise ContractError(
            f"contract {contract.__qualname__} must expose exactly one operation, "
            f"found {len(operations)}: {sorted(operations)}"
        )
    (name, member), = operations.items()
    signature = ContractSignature(
        identifier=contract_identifier(contract),
        operation=name,
        parameters=_signature_parameters(contract, name, member),
        contract=contract,
    )
    _SIGNATURES[contract] = signature
    _log.debug("contract %s -> %s(%s)", signature.identifier, name,
               ", ".join(f"{p.name}: {p.token}" for p in signature.parameters))
    return signature


def bound_operation(value: Any, operation: str) -> Callable[..., Any] | None:
    if operation == '__call__':
        return value if callable(value) else None
    target = getattr(value, operation, None)
    return target if callable(target) else None


def ensure_satisfies(path: str, value: Any, signature: ContractSignature) -> Callable[..., Any]:
    """Structural check that *value* honors *signature*; returns the callable operation."""
    target = bound_operation(value, signature.operation)
    if target is None:
        raise ContractViolationError(
            path,
            f"file didn't return an object implementing '{signature.identifier}' "
            f"(got {type(value).__name__} without callable {signature.operation})",
        )
    try:
        sig = inspect.signature(target)
    except (TypeError, ValueError):
        # builtins without introspectable signatures: accept on callability
        return target
    try:
        sig.bind(*([None] * signature.arity))
    except TypeError as e:
        raise ContractViolationError(
            path,
            f"{signature.operation} does not accept the {signature.arity} argument(s) of "
            f"'{signature.identifier}': {e}",
        ) from e
    return target
