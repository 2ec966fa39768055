"""
Build and signing records passed between pipeline stages.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .target import SymbolOutcome, Target


class BuildArtifact(BaseModel):
    """The compiled shared library for one target."""

    target: Target
    library: Path = Field(description="Compiled shared library")
    symbols: SymbolOutcome = Field(default=SymbolOutcome.KEPT)
    sidecar: Path | None = Field(default=None, description="Split debug symbols, if any")
    dependencies: list[Path] = Field(
        default_factory=list,
        description="Shared libraries the library needs at load time, bundled beside it",
    )

    @property
    def debug_symbols(self) -> Path | None:
        """File that carries this target's debug symbols, if one does."""
        if self.sidecar is not None:
            return self.sidecar
        if self.symbols == SymbolOutcome.KEPT:
            return self.library
        return None


class BuildResult(BaseModel):
    """All artifacts of one successful build, in target declaration order."""

    profile: str
    artifacts: list[BuildArtifact] = Field(default_factory=list)

    def for_target(self, target: Target) -> BuildArtifact | None:
        for artifact in self.artifacts:
            if artifact.target == target:
                return artifact
        return None


class CredentialSource(str, Enum):
    """Where a signing credential was resolved from."""

    ENVIRONMENT = "environment"
    SIGNING_TABLE = "signing_table"
    DEBUG_KEYSTORE = "debug_keystore"


class SigningKey(BaseModel):
    """Credentials for exactly one signing operation."""

    model_config = ConfigDict(frozen=True)

    path: Path
    password: str = Field(repr=False)
    source: CredentialSource
    alias: str | None = None
