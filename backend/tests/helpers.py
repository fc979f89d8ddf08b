"""Small builders shared by the loader tests."""


def plugin_source(name: str, *, fail: bool = False) -> str:
    """Source of a plugin file recording *name* on the Context it is given."""
    if fail:
        return (
            "def plugin(ctx):\n"
            f"    ctx.record({name!r})\n"
            f"    raise RuntimeError('boom from {name}')\n"
        )
    return (
        "def plugin(ctx):\n"
        f"    ctx.record({name!r})\n"
    )
