"""Immutable values threaded through a single loader call.

Each stage in ``pipeline`` receives a ``LoaderState`` and returns a new one
via ``dataclasses.replace``; nothing is mutated in place.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple


class _AnyType:
    _instance: Optional['_AnyType'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'ANY'


# Annotation placeholder for untyped / typing.Any contract parameters.
ANY = _AnyType()
ANY_TOKEN = 'any'


def type_token(tp: Any) -> str:
    """Stable textual classification of a runtime type (``int``, ``pkg.mod.Cls``)."""
    if tp is ANY:
        return ANY_TOKEN
    module = getattr(tp, '__module__', None)
    qualname = getattr(tp, '__qualname__', None) or getattr(tp, '__name__', None) or repr(tp)
    if not module or module == 'builtins':
        return qualname
    return f"{module}.{qualname}"


class LoaderStage(str, enum.Enum):
    UNCONFIGURED = 'unconfigured'
    CONFIGURED = 'configured'
    CACHE_HIT = 'cache_hit'
    SCANNED = 'scanned'
    INVOKED = 'invoked'
    CACHED = 'cached'


@dataclass(frozen=True)
class LoaderConfig:
    source_root: Path
    search_dir: Path
    pattern: Optional[str]
    contract: Any = None
    cache_path: Optional[Path] = None
    cached: bool = False
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class Parameter:
    name: str
    annotation: Any = ANY

    @property
    def token(self) -> str:
        return type_token(self.annotation)

    @property
    def is_any(self) -> bool:
        return self.annotation is ANY


@dataclass(frozen=True)
class ContractSignature:
    identifier: str
    operation: str
    parameters: Tuple[Parameter, ...] = ()
    contract: Any = None

    @property
    def arity(self) -> int:
        return len(self.parameters)

    def describe(self) -> list[dict[str, str]]:
        return [{'name': p.name, 'type': p.token} for p in self.parameters]


@dataclass(frozen=True)
class DiscoveredModule:
    path: str
    value: Any


@dataclass(frozen=True)
class InvocationReport:
    succeeded: Tuple[str, ...] = ()
    failed: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CacheArtifact:
    generator: str
    generator_version: str
    format: str
    created_at: str
    contract: str
    operation: str
    parameters: Tuple[Dict[str, str], ...]
    modules: Tuple[str, ...]


@dataclass(frozen=True)
class LoaderState:
    stage: LoaderStage = LoaderStage.UNCONFIGURED
    config: Optional[LoaderConfig] = None
    signature: Optional[ContractSignature] = None
    bound_args: Tuple[Any, ...] = ()
    modules: Mapping[str, DiscoveredModule] = field(default_factory=dict)
    report: Optional[InvocationReport] = None
    artifact: Optional[CacheArtifact] = None
