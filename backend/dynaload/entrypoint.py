from __future__ import annotations
import argparse
from dynaload.core.config import settings
from dynaload.core.logging_config import configure_logging
from dynaload.bootstrap import clear_cache


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='dynaload-server')
    parser.add_argument('--clear-cache', action='store_true',
                        help='delete cache artifacts (even in prod) and exit')
    parser.add_argument('--reload', action='store_true', help='enable uvicorn auto-reload (dev)')
    return parser.parse_args(argv)


def main(argv=None):
    args = _parse_args(argv)
    configure_logging(settings.log_level)
    print(f"[entrypoint] starting version={settings.version} app_env={settings.app_env} log_level={settings.log_level}", flush=True)
    for line in settings.diagnostics or []:
        print(f"[entrypoint][config] {line}", flush=True)

    if args.clear_cache:
        removed = clear_cache(force=True)
        print(f"[entrypoint] cleared {removed} cache file(s) from {settings.cache_dir}", flush=True)
        return

    import uvicorn
    print(f"[entrypoint] launching uvicorn on {settings.host}:{settings.port}", flush=True)
    try:
        uvicorn.run(
            'dynaload.bootstrap:create_app',
            factory=True,
            host=settings.host,
            port=settings.port,
            reload=args.reload,
            log_level=settings.log_level.lower(),
        )
    finally:
        print("[entrypoint] uvicorn stopped", flush=True)

if __name__ == '__main__':  # pragma: no cover
    main()
