"""Loader stages and the two public entry points.

    UNCONFIGURED --configure--> CONFIGURED --[artifact exists]--> CACHE_HIT
    CONFIGURED --scan--> SCANNED --invoke--> INVOKED --cache--> CACHED

Each stage takes a ``LoaderState`` and returns a new one, so transitions can
be driven and tested one at a time.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Mapping

from dynaload.core.config import Settings
from dynaload.core.errors import CacheWriteError, ConfigError, LoaderError
from dynaload.loader.artifact import build_artifact, check_compatible, read_artifact, replay, write_artifact
from dynaload.loader.config import LoaderOptions, cache_exists, resolve_config
from dynaload.loader.contracts import inspect_contract
from dynaload.loader.invoker import invoke_all
from dynaload.loader.matcher import match_arguments
from dynaload.loader.scanner import scan
from dynaload.loader.state import LoaderStage, LoaderState

_log = logging.getLogger(__name__)


def _expect(state: LoaderState, *stages: LoaderStage) -> None:
    if state.stage not in stages:
        allowed = ", ".join(s.value for s in stages)
        raise LoaderError(f"loader is {state.stage.value}, expected {allowed}")


def configure(
    bag: Mapping[str, Any] | LoaderOptions,
    settings: Settings | None = None,
    *,
    invoking: bool = True,
) -> LoaderState:
    """Resolve config, inspect the contract and bind arguments; no filesystem scan.

    With ``invoking=False`` (scan-only callers) args may be omitted.
    """
    config = resolve_config(bag, settings, require_args=invoking)
    signature = None
    bound: tuple = ()
    if config.contract is not None:
        signature = inspect_contract(config.contract)
        if invoking or config.args:
            bound = match_arguments(signature, config.args)
    return LoaderState(stage=LoaderStage.CONFIGURED, config=config, signature=signature, bound_args=bound)


def load_cache(state: LoaderState) -> LoaderState:
    """Fast path: read the artifact and replay it. Broken artifacts are fatal.

    If the artifact cannot be opened (vanished, permissions) the call falls
    back to scanning and the state stays CONFIGURED with ``cached`` cleared.
    """
    _expect(state, LoaderStage.CONFIGURED)
    config = state.config
    if config.cache_path is None or not config.cached:
        raise LoaderError("no cache artifact configured")
    if state.signature is None:
        raise ConfigError("a cached call requires a contract")
    try:
        artifact = read_artifact(config.cache_path)
    except OSError as e:
        _log.warning("cannot read cache artifact %s, falling back to scan: %s", config.cache_path, e)
        return replace(state, config=replace(config, cached=False))
    check_compatible(artifact, state.signature, config.cache_path)
    report = replay(artifact, state.bound_args, config.source_root)
    _log.info("replayed cache artifact %s: ok=%d failed=%d",
              config.cache_path, len(report.succeeded), len(report.failed))
    return replace(state, stage=LoaderStage.CACHE_HIT, artifact=artifact, report=report)


def scan_stage(state: LoaderState) -> LoaderState:
    _expect(state, LoaderStage.CONFIGURED)
    config = state.config
    modules = scan(config.search_dir, config.pattern, state.signature, config.source_root)
    return replace(state, stage=LoaderStage.SCANNED, modules=modules)


def invoke_stage(state: LoaderState) -> LoaderState:
    _expect(state, LoaderStage.SCANNED)
    if state.signature is None:
        raise ConfigError("invoking modules requires a contract")
    report = invoke_all(state.modules, state.signature, state.bound_args)
    return replace(state, stage=LoaderStage.INVOKED, report=report)


def cache_stage(state: LoaderState) -> LoaderState:
    """Persist the retained modules. Write failures are logged, never raised."""
    _expect(state, LoaderStage.INVOKED)
    config = state.config
    if config.cache_path is None:
        return state
    retained = state.report.succeeded if state.report else ()
    if not retained:
        _log.warning("no modules ran successfully; not writing cache artifact %s", config.cache_path)
        return state
    if cache_exists(config.cache_path):
        _log.info("cache artifact %s appeared during this call, leaving it in place", config.cache_path)
        return state
    artifact = build_artifact(state.signature, retained)
    try:
        written = write_artifact(config.cache_path, artifact)
    except CacheWriteError as e:
        _log.error("CACHE WRITE FAILED: %s; continuing without a cache", e, exc_info=e.cause)
        return state
    if not written:
        return state
    return replace(state, stage=LoaderStage.CACHED, artifact=artifact)


def execute(bag: Mapping[str, Any] | LoaderOptions, settings: Settings | None = None) -> LoaderState:
    """``run`` that hands back the final state."""
    state = configure(bag, settings)
    if state.signature is None:
        raise ConfigError("run() requires a contract; use load() to collect values")
    if state.config.cached:
        state = load_cache(state)
        if state.stage is LoaderStage.CACHE_HIT:
            return state
    state = scan_stage(state)
    state = invoke_stage(state)
    return cache_stage(state)


def run(config: Mapping[str, Any] | LoaderOptions, settings: Settings | None = None) -> None:
    """Cache-or-scan, verify, invoke every module and update the cache."""
    execute(config, settings)


def load(config: Mapping[str, Any] | LoaderOptions, settings: Settings | None = None) -> Dict[str, Any]:
    """Scan only: return ``{path: value}`` without invoking or caching anything."""
    state = scan_stage(configure(config, settings, invoking=False))
    return {path: module.value for path, module in state.modules.items()}
