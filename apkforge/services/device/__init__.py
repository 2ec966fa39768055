"""Device control service."""

from .service import DeviceController

__all__ = ["DeviceController"]
