"""Workflow execution endpoints.

Run a workflow (or one node), get execution status, cancel execution.
Execution records live in Redis under tenant-scoped keys, so another
tenant's execution id answers 404.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    get_current_tenant_id,
    get_current_user_id,
    get_db,
    get_execution_service,
    require_role,
)
from app.models.audit_log import AuditAction, AuditResourceType
from app.models.workflow import Workflow
from app.schemas.execution import ExecutionRequest, ExecutionStatusResponse
from app.services.audit_service import AuditService
from app.services.execution_service import (
    ExecutionFinished,
    ExecutionNotFound,
    ExecutionService,
)

router = APIRouter()


def _to_response(record: dict) -> ExecutionStatusResponse:
    return ExecutionStatusResponse(
        id=UUID(record["id"]),
        workflow_id=UUID(record["workflow_id"]),
        status=record["status"],
        started_at=record.get("started_at"),
        completed_at=record.get("completed_at"),
        node_statuses=record.get("node_statuses") or {},
        dashboard_items_saved=record.get("dashboard_items_saved", 0),
        error=record.get("error"),
    )


@router.post("", response_model=ExecutionStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def execute_workflow(
    body: ExecutionRequest,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: ExecutionService = Depends(get_execution_service),
    _: dict = Depends(require_role("admin", "analyst")),
):
    """Execute a stored workflow on the node engine.

    Node status changes stream over the execution's WebSocket channel. When
    the workflow belongs to a chat, the dashboard items its nodes produce
    are saved under that chat.
    """
    result = await db.execute(
        select(Workflow).where(
            Workflow.id == body.workflow_id,
            Workflow.tenant_id == tenant_id,
        )
    )
    workflow = result.scalar_one_or_none()
    if not workflow:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workflow not found")

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.EXECUTED,
        resource_type=AuditResourceType.WORKFLOW,
        resource_id=body.workflow_id,
        metadata={"node_id": body.node_id} if body.node_id else None,
    )
    await db.commit()

    try:
        record = await service.run(
            workflow,
            tenant_id,
            node_id=body.node_id,
            include_dependencies=body.include_dependencies,
        )
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Node not found")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return _to_response(record)


@router.get("/{execution_id}", response_model=ExecutionStatusResponse)
async def get_execution_status(
    execution_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    service: ExecutionService = Depends(get_execution_service),
):
    try:
        record = await service.get_record(tenant_id, execution_id)
    except ExecutionNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Execution not found")
    return _to_response(record)


@router.post(
    "/{execution_id}/cancel",
    response_model=ExecutionStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def cancel_execution(
    execution_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    service: ExecutionService = Depends(get_execution_service),
    _: dict = Depends(require_role("admin", "analyst")),
):
    """Cancel a pending or running execution; 409 once it has finished."""
    try:
        record = await service.cancel(tenant_id, execution_id)
    except ExecutionNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Execution not found")
    except ExecutionFinished as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Execution already {e}",
        )
    return _to_response(record)
