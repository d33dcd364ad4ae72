"""Pydantic models for CircleCI v1.1 API payloads.

Only the fields the ledger consumes are declared; everything else in the
provider's responses is ignored.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from coverage_shortcuts.builds.models import Artifact, Build


class WorkflowPayload(BaseModel):
    """Nested ``workflows`` object of a build."""

    model_config = ConfigDict(extra="ignore")

    workflow_name: str | None = Field(default=None)


class BuildPayload(BaseModel):
    """Schema for one entry of the list-builds response.

    Attributes:
        build_num: Provider build number.
        outcome: Terminal outcome; null while the build is running.
        build_url: Build page URL.
        subject: Commit subject (may be null for API-triggered builds).
        branch: Source branch.
        vcs_revision: Source commit SHA.
        parallel: Parallelism.
        workflows: Workflow details; the name is nested under workflow_name.
        start_time: Start timestamp; null for queued builds.
    """

    model_config = ConfigDict(extra="ignore")

    build_num: int
    outcome: str | None = None
    build_url: str | None = None
    subject: str | None = None
    branch: str | None = None
    vcs_revision: str | None = None
    parallel: int | None = None
    workflows: WorkflowPayload | None = None
    start_time: datetime | None = None

    def to_build(self) -> Build:
        """Convert to a transient Build model."""
        return Build(
            build_num=self.build_num,
            outcome=self.outcome,
            url=self.build_url or "",
            subject=self.subject or "",
            branch=self.branch or "",
            commit=self.vcs_revision or "",
            parallel=self.parallel if self.parallel is not None else 1,
            workflow=self.workflows.workflow_name if self.workflows else None,
            start_time=self.start_time,
            archived=False,
        )


class ArtifactPayload(BaseModel):
    """Schema for one entry of the list-artifacts response.

    The payload does not carry the build number; callers stamp it in.
    """

    model_config = ConfigDict(extra="ignore")

    url: str

    def to_artifact(self, build_num: int) -> Artifact:
        """Convert to a transient Artifact owned by ``build_num``."""
        return Artifact(url=self.url, build_num=build_num)


BUILD_LIST_ADAPTER = TypeAdapter(list[BuildPayload])
ARTIFACT_LIST_ADAPTER = TypeAdapter(list[ArtifactPayload])


__all__ = [
    "ARTIFACT_LIST_ADAPTER",
    "BUILD_LIST_ADAPTER",
    "ArtifactPayload",
    "BuildPayload",
    "WorkflowPayload",
]
