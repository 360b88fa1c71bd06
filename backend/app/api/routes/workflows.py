"""Workflow CRUD endpoints.

Thin controllers: validate -> call service -> return Pydantic response.
All queries are scoped by tenant_id from the JWT. Every workflow hangs off a
chat; creating one without a chat_id creates the chat as well.
"""

import secrets
from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    claim_chat,
    get_current_tenant_id,
    get_current_user_id,
    get_db,
    require_role,
)
from app.engine.connection_manager import ConnectionManager, port_index
from app.engine.errors import WorkflowValidationError
from app.engine.storage_manager import StorageManager
from app.models.audit_log import AuditAction, AuditResourceType
from app.models.workflow import Workflow, WorkflowVersion
from app.schemas.workflow import (
    ConnectionValidateRequest,
    ConnectionValidateResponse,
    WorkflowCreate,
    WorkflowExportMetadata,
    WorkflowExportResponse,
    WorkflowImportRequest,
    WorkflowListResponse,
    WorkflowResponse,
    WorkflowSummaryResponse,
    WorkflowUpdate,
    WorkflowValidationResponse,
    WorkflowVersionListResponse,
    WorkflowVersionResponse,
)
from app.services.audit_service import AuditService

router = APIRouter()


async def _get_workflow(db: AsyncSession, workflow_id: UUID, tenant_id: UUID) -> Workflow:
    result = await db.execute(
        select(Workflow).where(
            Workflow.id == workflow_id,
            Workflow.tenant_id == tenant_id,
        )
    )
    workflow = result.scalar_one_or_none()
    if not workflow:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Workflow not found"
        )
    return workflow


async def _snapshot(db: AsyncSession, workflow: Workflow, user_id: UUID) -> None:
    max_ver = await db.execute(
        select(func.coalesce(func.max(WorkflowVersion.version_number), 0)).where(
            WorkflowVersion.workflow_id == workflow.id
        )
    )
    db.add(
        WorkflowVersion(
            workflow_id=workflow.id,
            version_number=max_ver.scalar_one() + 1,
            graph_json=workflow.graph_json,
            created_by=user_id,
        )
    )


@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    tenant_id: UUID = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    total_q = await db.execute(
        select(func.count(Workflow.id)).where(Workflow.tenant_id == tenant_id)
    )
    total = total_q.scalar_one()

    result = await db.execute(
        select(Workflow)
        .where(Workflow.tenant_id == tenant_id)
        .order_by(Workflow.updated_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return WorkflowListResponse(
        items=[WorkflowResponse.model_validate(w) for w in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    return WorkflowResponse.model_validate(await _get_workflow(db, workflow_id, tenant_id))


@router.post("", response_model=WorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    body: WorkflowCreate,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    chat_id = await claim_chat(db, body.chat_id, body.name, tenant_id, user_id)
    workflow = Workflow(
        name=body.name,
        description=body.description,
        graph_json=body.graph_json,
        chat_id=chat_id,
        tenant_id=tenant_id,
        created_by=user_id,
    )
    db.add(workflow)
    await db.flush()

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.CREATED,
        resource_type=AuditResourceType.WORKFLOW,
        resource_id=workflow.id,
        metadata={"name": body.name, "chat_id": str(chat_id)},
    )

    await db.commit()
    await db.refresh(workflow)
    return WorkflowResponse.model_validate(workflow)


@router.patch("/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: UUID,
    body: WorkflowUpdate,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    workflow = await _get_workflow(db, workflow_id, tenant_id)
    update_data = body.model_dump(exclude_unset=True)

    # Auto-snapshot current graph_json before applying update
    if "graph_json" in update_data:
        await _snapshot(db, workflow, user_id)

    if update_data.get("shared") and not workflow.shared_id:
        workflow.shared_id = secrets.token_urlsafe(16)

    for field, value in update_data.items():
        setattr(workflow, field, value)

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.UPDATED,
        resource_type=AuditResourceType.WORKFLOW,
        resource_id=workflow.id,
        metadata={"fields": list(update_data.keys())},
    )

    await db.commit()
    await db.refresh(workflow)
    return WorkflowResponse.model_validate(workflow)


@router.delete("/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(
    workflow_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    workflow = await _get_workflow(db, workflow_id, tenant_id)

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.DELETED,
        resource_type=AuditResourceType.WORKFLOW,
        resource_id=workflow.id,
        metadata={"name": workflow.name},
    )

    await db.delete(workflow)
    await db.commit()


# --- Graph inspection ---


@router.get("/{workflow_id}/validation", response_model=WorkflowValidationResponse)
async def validate_workflow(
    workflow_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Structural problems plus graph problems (cycles, no roots, bad ports)."""
    graph = (await _get_workflow(db, workflow_id, tenant_id)).graph_json or {}
    errors = StorageManager.validate_workflow_structure(graph)
    nodes = [n for n in graph.get("nodes") or [] if n.get("id")]
    errors.extend(ConnectionManager.validate_workflow(nodes, graph.get("edges") or [])["errors"])
    return WorkflowValidationResponse(valid=not errors, errors=errors)


@router.get("/{workflow_id}/summary", response_model=WorkflowSummaryResponse)
async def summarize_workflow(
    workflow_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    graph = (await _get_workflow(db, workflow_id, tenant_id)).graph_json or {}
    return WorkflowSummaryResponse(**StorageManager.get_workflow_summary(graph))


@router.post(
    "/{workflow_id}/connections/validate", response_model=ConnectionValidateResponse
)
async def validate_connection(
    workflow_id: UUID,
    body: ConnectionValidateRequest,
    tenant_id: UUID = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Check a prospective edge against the stored graph; returns the edge to add when valid."""
    graph = (await _get_workflow(db, workflow_id, tenant_id)).graph_json or {}
    result = ConnectionManager.validate_connection(
        graph.get("nodes") or [],
        graph.get("edges") or [],
        body.source,
        body.target,
        body.source_handle,
        body.target_handle,
    )
    edge = None
    if result.valid:
        edge = ConnectionManager.create_edge(
            body.source,
            body.target,
            port_index(body.source_handle),
            port_index(body.target_handle),
        )
    return ConnectionValidateResponse(
        valid=result.valid,
        reason=result.reason,
        should_replace=result.should_replace,
        existing_edge_id=result.existing_edge_id,
        edge=edge,
    )


# --- Export/Import endpoints ---


@router.get("/{workflow_id}/export", response_model=WorkflowExportResponse)
async def export_workflow(
    workflow_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    workflow = await _get_workflow(db, workflow_id, tenant_id)

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.EXPORTED,
        resource_type=AuditResourceType.WORKFLOW,
        resource_id=workflow.id,
        metadata={"name": workflow.name},
    )
    await db.commit()

    return WorkflowExportResponse(
        metadata=WorkflowExportMetadata(
            version="1.0",
            exported_at=datetime.now(UTC),
            source_workflow_id=workflow.id,
        ),
        name=workflow.name,
        description=workflow.description,
        graph_json=StorageManager.export_workflow(workflow.graph_json or {}, workflow.name),
    )


@router.post(
    "/import",
    response_model=WorkflowResponse,
    status_code=status.HTTP_201_CREATED,
)
async def import_workflow(
    body: WorkflowImportRequest,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    # Fresh node and edge ids so the copy never collides with its source
    try:
        graph = StorageManager.regenerate_ids(StorageManager.import_workflow(body.graph_json))
    except WorkflowValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    chat_id = await claim_chat(db, body.chat_id, body.name, tenant_id, user_id)
    workflow = Workflow(
        name=body.name,
        description=body.description,
        graph_json=graph,
        chat_id=chat_id,
        tenant_id=tenant_id,
        created_by=user_id,
    )
    db.add(workflow)
    await db.flush()

    source_id = body.metadata.source_workflow_id if body.metadata else None
    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.IMPORTED,
        resource_type=AuditResourceType.WORKFLOW,
        resource_id=workflow.id,
        metadata={
            "name": body.name,
            "source_workflow_id": str(source_id) if source_id else None,
        },
    )

    await db.commit()
    await db.refresh(workflow)
    return WorkflowResponse.model_validate(workflow)


# --- Version endpoints ---


@router.get("/{workflow_id}/versions", response_model=WorkflowVersionListResponse)
async def list_workflow_versions(
    workflow_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    tenant_id: UUID = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    await _get_workflow(db, workflow_id, tenant_id)

    total_q = await db.execute(
        select(func.count(WorkflowVersion.id)).where(
            WorkflowVersion.workflow_id == workflow_id
        )
    )
    result = await db.execute(
        select(WorkflowVersion)
        .where(WorkflowVersion.workflow_id == workflow_id)
        .order_by(WorkflowVersion.version_number.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return WorkflowVersionListResponse(
        items=[WorkflowVersionResponse.model_validate(v) for v in result.scalars().all()],
        total=total_q.scalar_one(),
    )


async def _get_version(db: AsyncSession, workflow_id: UUID, version_id: UUID) -> WorkflowVersion:
    result = await db.execute(
        select(WorkflowVersion).where(
            WorkflowVersion.id == version_id,
            WorkflowVersion.workflow_id == workflow_id,
        )
    )
    version = result.scalar_one_or_none()
    if not version:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Version not found"
        )
    return version


@router.get(
    "/{workflow_id}/versions/{version_id}", response_model=WorkflowVersionResponse
)
async def get_workflow_version(
    workflow_id: UUID,
    version_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    await _get_workflow(db, workflow_id, tenant_id)
    return WorkflowVersionResponse.model_validate(await _get_version(db, workflow_id, version_id))


@router.post(
    "/{workflow_id}/versions/{version_id}/rollback",
    response_model=WorkflowResponse,
)
async def rollback_workflow(
    workflow_id: UUID,
    version_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    workflow = await _get_workflow(db, workflow_id, tenant_id)
    target_version = await _get_version(db, workflow_id, version_id)

    # Snapshot current state before rollback
    await _snapshot(db, workflow, user_id)
    workflow.graph_json = target_version.graph_json

    await db.commit()
    await db.refresh(workflow)
    return WorkflowResponse.model_validate(workflow)
