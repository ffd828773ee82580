"""
Runtime Backends Module
"""

# Lazy import so the scheduler can be used without anyio installed
def __getattr__(name):
    if name == "AnyIOBackend":
        from cspylib.runtime.backends.anyio_backend import AnyIOBackend
        return AnyIOBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    'AnyIOBackend',
]
