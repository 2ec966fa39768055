"""Data models for apkforge."""

from .manifest import ManifestNode, serialize
from .project import (
    Activity,
    Application,
    Feature,
    IntentData,
    IntentFilter,
    MetaData,
    Permission,
    ProjectConfig,
    Queries,
    QueryIntent,
    QueryPackage,
    QueryProvider,
    Sdk,
    SigningEntry,
    normalize_package_name,
    sanitize_output_name,
)
from .target import SUPPORTED_TARGETS, Profile, StripConfig, SymbolOutcome, Target

__all__ = [
    "ManifestNode",
    "serialize",
    "Activity",
    "Application",
    "Feature",
    "IntentData",
    "IntentFilter",
    "MetaData",
    "Permission",
    "ProjectConfig",
    "Queries",
    "QueryIntent",
    "QueryPackage",
    "QueryProvider",
    "Sdk",
    "SigningEntry",
    "normalize_package_name",
    "sanitize_output_name",
    "SUPPORTED_TARGETS",
    "Profile",
    "StripConfig",
    "SymbolOutcome",
    "Target",
]
