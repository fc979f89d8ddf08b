"""Walk the search directory and materialize matching files.

Every file whose source-root-relative path matches the pattern is
materialized; with a contract the produced value must also honor it. Files
that fail either step are logged and skipped, the walk always continues.
"""
from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import yaml

from dynaload.core.errors import ModuleLoadError, ModuleMaterializationError
from dynaload.loader.contracts import ensure_satisfies
from dynaload.loader.state import ContractSignature, DiscoveredModule

_log = logging.getLogger(__name__)

# Module-level name a plugin file binds its value to.
EXPORT_NAME = 'plugin'

_PRUNED_DIRS = {'__pycache__'}
_GLOB_CHARS = ('*', '?', '[')
_YAML_SUFFIXES = ('.yml', '.yaml')


def relative_path(path: Path, source_root: Path) -> str:
    return path.relative_to(source_root).as_posix()


def matches(rel_path: str, pattern: Optional[str]) -> bool:
    """Glob patterns match the file name (or the whole path when they contain
    '/'); plain patterns are suffix matches."""
    if not pattern:
        return True
    if any(ch in pattern for ch in _GLOB_CHARS):
        target = rel_path if '/' in pattern else rel_path.rsplit('/', 1)[-1]
        return fnmatch.fnmatchcase(target, pattern)
    return rel_path.endswith(pattern)


def iter_files(search_dir: Path) -> Iterator[Path]:
    """Regular files under *search_dir*, in sorted order."""
    for dirpath, dirnames, filenames in os.walk(search_dir):
        dirnames[:] = sorted(d for d in dirnames if d not in _PRUNED_DIRS and not d.startswith('.'))
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.is_file():
                yield path


def execute_file(path: Path, rel_path: str) -> Any:
    try:
        code = path.read_text(encoding='utf-8')
        ns: dict = {'__name__': f"dynaload.modules.{rel_path}", '__file__': str(path)}
        exec(compile(code, str(path), 'exec'), ns, ns)
    except Exception as e:  # noqa: BLE001 - plugin code may raise anything
        raise ModuleLoadError(rel_path, f"{e.__class__.__name__}: {e}") from e
    if EXPORT_NAME not in ns:
        raise ModuleLoadError(rel_path, f"file does not define '{EXPORT_NAME}'")
    return ns[EXPORT_NAME]


def materialize(path: Path, rel_path: str, *, execute: bool) -> Any:
    """Produce the value a file stands for.

    ``execute`` forces Python execution whatever the suffix; otherwise only
    ``.py`` files run, YAML files are parsed and anything else is read as text.
    """
    if execute or path.suffix == '.py':
        return execute_file(path, rel_path)
    try:
        text = path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise ModuleLoadError(rel_path, f"{e.__class__.__name__}: {e}") from e
    if path.suffix in _YAML_SUFFIXES:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ModuleLoadError(rel_path, f"invalid YAML: {e}") from e
    return text


def scan(
    search_dir: Path,
    pattern: Optional[str],
    signature: Optional[ContractSignature],
    source_root: Path,
) -> Dict[str, DiscoveredModule]:
    found: Dict[str, DiscoveredModule] = {}
    matched = 0
    for path in iter_files(search_dir):
        rel = relative_path(path, source_root)
        if not matches(rel, pattern):
            continue
        matched += 1
        try:
            value = materialize(path, rel, execute=signature is not None)
            if signature is not None:
                ensure_satisfies(rel, value, signature)
        except ModuleMaterializationError as e:
            _log.warning("Error dynamically loading %s (%s): %s", rel, e.reason, e.message)
            continue
        found[rel] = DiscoveredModule(path=rel, value=value)

    if matched == 0:
        _log.warning("no files matching %r under %s", pattern, search_dir)
    else:
        _log.info("scanned %s: matched=%d loaded=%d skipped=%d",
                  search_dir, matched, len(found), matched - len(found))
    return dict(sorted(found.items()))
