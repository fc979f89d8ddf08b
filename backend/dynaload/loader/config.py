"""Turn a loose configuration bag into a validated ``LoaderConfig``."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from dynaload.core.config import Settings, settings as default_settings
from dynaload.core.errors import ConfigError
from dynaload.loader.contracts import default_pattern
from dynaload.loader.state import LoaderConfig

_log = logging.getLogger(__name__)

CACHE_SUFFIX = '.yml'
DEFAULT_PATTERN = '*.py'


class LoaderOptions(BaseModel):
    search_dir: Optional[str] = Field(None, alias='searchDir')
    source_root: Optional[str] = Field(None, alias='sourceRoot')
    pattern: Optional[str] = None
    contract: Any = None
    cachefile: Optional[str] = Field(None, alias='cacheFile')
    args: Optional[List[Any]] = None

    model_config = {
        'populate_by_name': True,
        'extra': 'forbid',
        'arbitrary_types_allowed': True,
    }


def _parse_options(bag: Mapping[str, Any] | LoaderOptions) -> LoaderOptions:
    if isinstance(bag, LoaderOptions):
        return bag
    if not isinstance(bag, Mapping):
        raise ConfigError(f"loader configuration must be a mapping, got {type(bag).__name__}")
    data = dict(bag)
    # accept the snake_case spelling of the cache key as well
    if 'cache_file' in data and 'cachefile' not in data:
        data['cachefile'] = data.pop('cache_file')
    for key in ('search_dir', 'source_root', 'searchDir', 'sourceRoot', 'cachefile', 'cacheFile'):
        if isinstance(data.get(key), os.PathLike):
            data[key] = os.fspath(data[key])
    if isinstance(data.get('args'), tuple):
        data['args'] = list(data['args'])
    try:
        return LoaderOptions.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid loader configuration: {e}") from e


def normalize_cache_path(cachefile: str, cache_dir: Path) -> Path:
    """Apply the canonical suffix and root relative names under *cache_dir*."""
    name = cachefile.strip()
    if not name:
        raise ConfigError("cachefile is empty")
    if name.endswith(CACHE_SUFFIX):
        name = name[:-len(CACHE_SUFFIX)]
    if not name or name.endswith(('/', os.sep)):
        raise ConfigError(f"cachefile {cachefile!r} has no file name")
    name = name + CACHE_SUFFIX
    path = Path(name).expanduser()
    if path.is_absolute():
        return path
    root = cache_dir.resolve()
    resolved = (root / path).resolve()
    if resolved != root and root not in resolved.parents:
        raise ConfigError(f"cachefile {cachefile!r} escapes the cache directory {root}")
    if resolved.parent != root:
        # clear_cache only sweeps the top level of the cache directory
        raise ConfigError(f"cachefile {cachefile!r} must name a file directly in the cache directory {root}")
    return resolved


def cache_exists(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError as e:
        # unreadable cache location: treat as a miss for this call
        _log.warning("cannot access cache path %s, treating as cache miss: %s", path, e)
        return False


def _check_search_dir(search_dir: Path, source_root: Path) -> None:
    if not search_dir.is_dir() or not os.access(search_dir, os.R_OK | os.X_OK):
        raise ConfigError(f"the search directory '{search_dir}' does not exist or is not readable")
    if search_dir != source_root and source_root not in search_dir.parents:
        raise ConfigError(f"the search directory '{search_dir}' is outside the source root '{source_root}'")


def resolve_config(
    bag: Mapping[str, Any] | LoaderOptions,
    settings: Settings | None = None,
    *,
    require_args: bool = True,
) -> LoaderConfig:
    cfg = settings or default_settings
    options = _parse_options(bag)

    pattern = options.pattern.strip() if options.pattern else None
    contract = options.contract
    if isinstance(contract, str) and not contract.strip():
        contract = None
    if not pattern and contract is None:
        raise ConfigError("either 'pattern' or 'contract' must be given")
    if not pattern:
        pattern = default_pattern(contract) or DEFAULT_PATTERN
    if contract is not None and require_args and options.args is None:
        raise ConfigError("'args' is required when a contract is given")

    source_root = Path(options.source_root).expanduser().resolve() if options.source_root else cfg.src_dir.resolve()
    search_dir = Path(options.search_dir).expanduser() if options.search_dir else source_root
    if not search_dir.is_absolute():
        search_dir = source_root / search_dir
    search_dir = search_dir.resolve()
    _check_search_dir(search_dir, source_root)

    cache_path = None
    cached = False
    if options.cachefile:
        cache_path = normalize_cache_path(options.cachefile, cfg.cache_dir)
        cached = cache_exists(cache_path)

    return LoaderConfig(
        source_root=source_root,
        search_dir=search_dir,
        pattern=pattern,
        contract=contract,
        cache_path=cache_path,
        cached=cached,
        args=tuple(options.args or ()),
    )
