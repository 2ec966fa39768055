"""Configuration loading service."""

from .service import ConfigLoader

__all__ = ["ConfigLoader"]
