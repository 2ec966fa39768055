"""Core infrastructure components for apkforge."""

from .config import Config, get_config
from .exceptions import (
    ApkForgeError,
    BuildError,
    ConfigError,
    DeviceError,
    DeviceUnavailable,
    InvalidPackageName,
    PackagingError,
    SigningError,
    ToolNotFoundError,
    UnsupportedTarget,
)
from .logging import get_logger, setup_logging
from .types import PipelineRun, ServiceResult, StageResult, StageStatus

__all__ = [
    "Config",
    "get_config",
    "ApkForgeError",
    "BuildError",
    "ConfigError",
    "DeviceError",
    "DeviceUnavailable",
    "InvalidPackageName",
    "PackagingError",
    "SigningError",
    "ToolNotFoundError",
    "UnsupportedTarget",
    "get_logger",
    "setup_logging",
    "PipelineRun",
    "ServiceResult",
    "StageResult",
    "StageStatus",
]
