"""Writers for sigrok session directory archives (srdir)."""

__all__ = [
    "config",
    "convert",
    "output",
    "webapi",
]
