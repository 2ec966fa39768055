"""Manifest synthesis service."""

from .service import ManifestSynthesizer

__all__ = ["ManifestSynthesizer"]
