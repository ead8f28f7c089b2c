"""
Shared Pydantic response models for API endpoints.

These models give FastAPI the type information it needs to generate
accurate OpenAPI schemas instead of empty `schema: {}`.

Usage:
    from api.response_models import ListResponse, PassSummaryResponse

    @router.get("/endpoint", response_model=ListResponse)
    def my_endpoint(): ...
"""

from typing import Any

from pydantic import BaseModel, Field

# ==== List Envelope ====
# Shape: {items, total}


class ListResponse(BaseModel):
    """Standard list endpoint response."""

    items: list[Any] = Field(default_factory=list, description="Result items")
    total: int = Field(description="Total count")


# ==== Detail Envelope ====


class DetailResponse(BaseModel):
    """Single-object response."""

    model_config = {"extra": "allow"}


# ==== Health Check ====


class HealthResponse(BaseModel):
    """Health check result."""

    status: str = Field(description="healthy or error")
    version: str = Field(description="Engine version")
    timestamp: str = Field(description="ISO timestamp")


# ==== Pass Requests / Summary ====


class AuditPassRequest(BaseModel):
    """Body for POST /passes/audit."""

    dry_run: bool = False
    batch_size: int | None = Field(default=None, ge=1)
    slugs: list[str] | None = None


class StreakPassRequest(BaseModel):
    """Body for POST /passes/streaks."""

    dry_run: bool = False
    batch_size: int | None = Field(default=None, ge=1)
    slugs: list[str] | None = None
    streak_type: str | None = None


class PassSummaryResponse(BaseModel):
    """Pass summary; camelCase keys as stored in the pass log."""

    jobType: str
    runId: str
    totalProcessed: int = 0
    newTags: int = 0
    resolvedTags: int = 0
    criticalIssues: int = 0
    averageScore: float = 0.0
    tagDistribution: dict[str, int] = Field(default_factory=dict)
    alertsCreated: int = 0
    alertsResolved: int = 0
    rewardsEarned: int = 0
    durationMs: int = 0
    errors: list[str] = Field(default_factory=list)
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    perEntityErrors: dict[str, str] = Field(default_factory=dict)
    notProcessed: list[str] = Field(default_factory=list)
    dryRun: bool = False
    aborted: bool = False
    decisions: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}


# ==== Mutation Result ====


class MutationResponse(BaseModel):
    """Standard mutation result."""

    success: bool = Field(description="Whether the operation succeeded")

    model_config = {"extra": "allow"}
