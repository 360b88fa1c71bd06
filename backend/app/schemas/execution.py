"""Pydantic schemas for workflow executions."""

from uuid import UUID

from pydantic import BaseModel


class ExecutionRequest(BaseModel):
    """Run a whole workflow, or one node (with its upstream nodes by default)."""

    workflow_id: UUID
    node_id: str | None = None
    include_dependencies: bool = True


class NodeStatusResponse(BaseModel):
    status: str  # idle | executing | success | error | skipped | cancelled
    started_at: str | None = None
    completed_at: str | None = None
    rows_processed: int | None = None
    error: str | None = None


class ExecutionStatusResponse(BaseModel):
    id: UUID
    workflow_id: UUID
    status: str  # pending | running | completed | failed | cancelled
    started_at: str | None = None
    completed_at: str | None = None
    node_statuses: dict[str, NodeStatusResponse] = {}
    dashboard_items_saved: int = 0
    error: str | None = None
