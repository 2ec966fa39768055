"""Services package for apkforge."""

from .build import BuildOrchestrator
from .config_loader import ConfigLoader
from .device import DeviceController
from .manifest import ManifestSynthesizer
from .packaging import PackageAssembler
from .signing import Signer

__all__ = [
    "ConfigLoader",
    "ManifestSynthesizer",
    "BuildOrchestrator",
    "PackageAssembler",
    "Signer",
    "DeviceController",
]
