"""
Core type definitions for apkforge.

Result types shared by the services and the pipeline, so each stage reports
its outcome, warnings and produced artifacts the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

ArtifactPath = Path


class StageStatus(str, Enum):
    """Status of a pipeline stage."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Result wrapper for service operations.

    Carries the produced data together with non-fatal warnings, e.g. the
    unrecognized configuration keys reported by the config loader. Failures
    are raised as ApkForgeError, never returned.
    """

    data: T
    warnings: list[str] = field(default_factory=list)


class StageResult(BaseModel):
    """Result of a pipeline stage execution."""

    stage_name: str = Field(description="Name of the pipeline stage")
    status: StageStatus = Field(default=StageStatus.RUNNING, description="Execution status")
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: datetime | None = Field(default=None)
    duration_seconds: float = Field(default=0.0)
    artifacts: list[ArtifactPath] = Field(default_factory=list, description="Produced files")
    error_message: str | None = Field(default=None)
    warnings: list[str] = Field(default_factory=list)

    def mark_completed(self, artifacts: list[ArtifactPath] | None = None) -> None:
        """Mark stage as successfully completed."""
        self.status = StageStatus.COMPLETED
        self.completed_at = datetime.utcnow()
        self.artifacts = list(artifacts or [])
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def mark_failed(self, error: str) -> None:
        """Mark stage as failed."""
        self.status = StageStatus.FAILED
        self.completed_at = datetime.utcnow()
        self.error_message = error
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()


class PipelineRun(BaseModel):
    """Represents one invocation of a command (build, run or debug)."""

    run_id: str = Field(description="Unique run identifier")
    command: str = Field(description="Command that started the run")
    package: str = Field(description="Package identifier being built")
    profile: str = Field(description="Build profile")
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: datetime | None = Field(default=None)
    stages: list[StageResult] = Field(default_factory=list)
    final_status: StageStatus = Field(default=StageStatus.PENDING)
    apk_path: Path | None = Field(default=None)
    @property
    def failed_stage(self) -> StageResult | None:
        """The first stage that failed, if any."""
        for stage in self.stages:
            if stage.status == StageStatus.FAILED:
                return stage
        return None
