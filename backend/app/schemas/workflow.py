"""Pydantic schemas for workflow endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class WorkflowCreate(BaseModel):
    name: str
    description: str | None = None
    graph_json: dict = {}
    chat_id: UUID | None = None


class WorkflowUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    graph_json: dict | None = None
    shared: bool | None = None


class WorkflowResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    chat_id: UUID | None = None
    name: str
    description: str | None
    graph_json: dict
    shared: bool = False
    shared_id: str | None = None
    created_by: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WorkflowListResponse(BaseModel):
    items: list[WorkflowResponse]
    total: int
    page: int
    page_size: int


class WorkflowVersionResponse(BaseModel):
    id: UUID
    workflow_id: UUID
    version_number: int
    graph_json: dict
    created_by: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class WorkflowVersionListResponse(BaseModel):
    items: list[WorkflowVersionResponse]
    total: int


class WorkflowValidationResponse(BaseModel):
    valid: bool
    errors: list[str]


class WorkflowSummaryResponse(BaseModel):
    nodeCount: int
    edgeCount: int
    nodeTypes: dict[str, int]
    executedNodes: int
    errorNodes: int


class ConnectionValidateRequest(BaseModel):
    source: str
    target: str
    source_handle: str = "source-0"
    target_handle: str = "target-0"


class ConnectionValidateResponse(BaseModel):
    valid: bool
    reason: str | None = None
    should_replace: bool = False
    existing_edge_id: str | None = None
    edge: dict | None = None


class WorkflowExportMetadata(BaseModel):
    version: str
    exported_at: datetime
    source_workflow_id: UUID | None = None


class WorkflowExportResponse(BaseModel):
    metadata: WorkflowExportMetadata
    name: str
    description: str | None = None
    graph_json: dict


class WorkflowImportRequest(BaseModel):
    metadata: WorkflowExportMetadata | None = None
    name: str
    description: str | None = None
    graph_json: dict
    chat_id: UUID | None = None
