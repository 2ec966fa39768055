"""Signing service."""

from .service import Signer

__all__ = ["Signer"]
