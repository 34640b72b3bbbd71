"""API routers."""

from ectd_packager.routers import health, packages, validation

__all__ = [
    "health",
    "packages",
    "validation",
]
