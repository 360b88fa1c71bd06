"""Chat endpoints: chats, their messages and the chat's workflow.

A user lists their own chats plus public chats of their tenant. Private
chats of other users answer 403.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    get_current_tenant_id,
    get_current_user_id,
    get_db,
    load_chat,
    require_role,
)
from app.models.audit_log import AuditAction, AuditResourceType
from app.models.chat import Chat, ChatVisibility, Message
from app.models.workflow import Workflow
from app.schemas.chat import (
    ChatCreate,
    ChatListResponse,
    ChatResponse,
    ChatWorkflowUpsert,
    MessageCreate,
    MessageResponse,
)
from app.schemas.workflow import WorkflowResponse
from app.services.audit_service import AuditService
from app.services.chat_service import (
    create_chat,
    get_chat_workflow,
    workflow_name_for_chat,
)

router = APIRouter()


@router.get("", response_model=ChatListResponse)
async def list_chats(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    conditions = [
        Chat.tenant_id == tenant_id,
        or_(Chat.user_id == user_id, Chat.visibility == ChatVisibility.PUBLIC),
    ]
    total = (await db.execute(select(func.count(Chat.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(Chat)
        .where(*conditions)
        .order_by(Chat.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return ChatListResponse(
        items=[ChatResponse.model_validate(c) for c in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
async def create_chat_route(
    body: ChatCreate,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    chat = await create_chat(db, tenant_id, user_id, body.title, ChatVisibility(body.visibility))

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.CREATED,
        resource_type=AuditResourceType.CHAT,
        resource_id=chat.id,
        metadata={"title": body.title},
    )

    await db.commit()
    await db.refresh(chat)
    return ChatResponse.model_validate(chat)


@router.get("/{chat_id}", response_model=ChatResponse)
async def get_chat(
    chat_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return ChatResponse.model_validate(await load_chat(db, chat_id, tenant_id, user_id))


@router.delete("/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat(
    chat_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    """Delete a chat with its messages, workflow, dashboard items and reports."""
    chat = await load_chat(db, chat_id, tenant_id, user_id, owner=True)

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.DELETED,
        resource_type=AuditResourceType.CHAT,
        resource_id=chat.id,
        metadata={"title": chat.title},
    )

    await db.delete(chat)
    await db.commit()


# --- Messages ---


@router.get("/{chat_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    chat_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await load_chat(db, chat_id, tenant_id, user_id)
    result = await db.execute(
        select(Message).where(Message.chat_id == chat_id).order_by(Message.created_at)
    )
    return [MessageResponse.model_validate(m) for m in result.scalars().all()]


@router.post(
    "/{chat_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def append_message(
    chat_id: UUID,
    body: MessageCreate,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    await load_chat(db, chat_id, tenant_id, user_id, owner=True)
    message = Message(
        chat_id=chat_id,
        role=body.role,
        parts=body.parts,
        attachments=body.attachments,
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)
    return MessageResponse.model_validate(message)


# --- Chat workflow ---


@router.get("/{chat_id}/workflow", response_model=WorkflowResponse)
async def get_workflow_for_chat(
    chat_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await load_chat(db, chat_id, tenant_id, user_id)
    workflow = await get_chat_workflow(db, chat_id, tenant_id)
    if not workflow:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workflow not found")
    return WorkflowResponse.model_validate(workflow)


@router.put("/{chat_id}/workflow", response_model=WorkflowResponse)
async def save_workflow_for_chat(
    chat_id: UUID,
    body: ChatWorkflowUpsert,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    """Create the chat's workflow, or replace its graph if one exists."""
    chat = await load_chat(db, chat_id, tenant_id, user_id, owner=True)
    workflow = await get_chat_workflow(db, chat_id, tenant_id)

    if workflow is None:
        workflow = Workflow(
            name=body.name or workflow_name_for_chat(chat.title),
            description=body.description,
            graph_json=body.graph_json,
            chat_id=chat.id,
            tenant_id=tenant_id,
            created_by=user_id,
        )
        db.add(workflow)
        await db.flush()
        action = AuditAction.CREATED
    else:
        workflow.graph_json = body.graph_json
        if body.name:
            workflow.name = body.name
        if body.description is not None:
            workflow.description = body.description
        action = AuditAction.UPDATED

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        resource_type=AuditResourceType.WORKFLOW,
        resource_id=workflow.id,
        metadata={"chat_id": str(chat_id)},
    )

    await db.commit()
    await db.refresh(workflow)
    return WorkflowResponse.model_validate(workflow)
