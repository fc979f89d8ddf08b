"""Plugin discovery loader.

``run`` scans, verifies, invokes and caches; ``load`` only scans.
"""
from dynaload.loader.contracts import capability, capability_registry, inspect_contract
from dynaload.loader.pipeline import execute, load, run
from dynaload.loader.state import LoaderStage, LoaderState

__all__ = [
    "capability",
    "capability_registry",
    "execute",
    "inspect_contract",
    "load",
    "run",
    "LoaderStage",
    "LoaderState",
]
