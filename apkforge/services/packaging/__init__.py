"""Package assembly service."""

from .service import PackageAssembler

__all__ = ["PackageAssembler"]
