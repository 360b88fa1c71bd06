"""Workflow template endpoints.

System templates are seeded on first listing. Users can save their own
templates, publish them to the tenant, and start a new workflow from any
template they can read.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import (
    claim_chat,
    get_current_tenant_id,
    get_current_user_id,
    get_template_service,
    require_role,
)
from app.engine.errors import WorkflowValidationError
from app.models.audit_log import AuditAction, AuditResourceType
from app.models.template import WorkflowTemplate
from app.models.workflow import Workflow
from app.schemas.template import (
    TemplateCategoryResponse,
    TemplateCreate,
    TemplateInstantiateRequest,
    TemplateListResponse,
    TemplateResponse,
    TemplateUpdate,
)
from app.schemas.workflow import WorkflowResponse
from app.services.audit_service import AuditService
from app.services.template_registry import instantiate_template
from app.services.template_service import TemplateAccessError, TemplateService

router = APIRouter()


async def _readable(
    service: TemplateService, template_id: str, tenant_id: UUID, user_id: UUID
) -> WorkflowTemplate:
    if await service.seed_system_templates():
        await service.db.commit()
    try:
        template = await service.get_readable(template_id, tenant_id, user_id)
    except TemplateAccessError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return template


async def _owned(service: TemplateService, template_id: str, user_id: UUID) -> WorkflowTemplate:
    try:
        template = await service.get_owned(template_id, user_id)
    except TemplateAccessError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return template


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    category_id: str | None = Query(None),
    is_public: bool | None = Query(None),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
):
    """Own and public templates, most used first."""
    if await service.seed_system_templates():
        await service.db.commit()

    result = await service.list_templates(
        tenant_id,
        user_id,
        category_id=category_id,
        is_public=is_public,
        search=search,
        page=page,
        page_size=page_size,
    )
    return TemplateListResponse(
        items=[TemplateResponse.model_validate(t) for t in result["items"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@router.get("/categories", response_model=list[TemplateCategoryResponse])
async def list_template_categories(
    service: TemplateService = Depends(get_template_service),
):
    if await service.seed_system_templates():
        await service.db.commit()
    return [TemplateCategoryResponse.model_validate(c) for c in await service.list_categories()]


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    body: TemplateCreate,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
    _: dict = Depends(require_role("admin", "analyst")),
):
    if await service.seed_system_templates():
        await service.db.flush()
    if not await service.get_category(body.category_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown template category: {body.category_id}",
        )

    template = await service.create_template(
        tenant_id=tenant_id,
        user_id=user_id,
        name=body.name,
        description=body.description,
        category_id=body.category_id,
        data=body.data,
        use_case=body.use_case,
        tags=body.tags,
        is_public=body.is_public,
    )

    audit = AuditService(service.db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.CREATED,
        resource_type=AuditResourceType.TEMPLATE,
        resource_id=template.id,
        metadata={"name": body.name, "is_public": body.is_public},
    )

    await service.db.commit()
    await service.db.refresh(template)
    return TemplateResponse.model_validate(template)


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
):
    return TemplateResponse.model_validate(
        await _readable(service, template_id, tenant_id, user_id)
    )


@router.patch("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    body: TemplateUpdate,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
    _: dict = Depends(require_role("admin", "analyst")),
):
    template = await _owned(service, template_id, user_id)
    update_data = body.model_dump(exclude_unset=True)
    if "category_id" in update_data and not await service.get_category(update_data["category_id"]):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown template category: {update_data['category_id']}",
        )
    for field, value in update_data.items():
        setattr(template, field, value)

    audit = AuditService(service.db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.UPDATED,
        resource_type=AuditResourceType.TEMPLATE,
        resource_id=template.id,
        metadata={"fields": sorted(update_data)},
    )

    await service.db.commit()
    await service.db.refresh(template)
    return TemplateResponse.model_validate(template)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: str,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
    _: dict = Depends(require_role("admin", "analyst")),
):
    template = await _owned(service, template_id, user_id)

    audit = AuditService(service.db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.DELETED,
        resource_type=AuditResourceType.TEMPLATE,
        resource_id=template.id,
        metadata={"name": template.name},
    )

    await service.db.delete(template)
    await service.db.commit()


@router.post("/{template_id}/use", status_code=status.HTTP_204_NO_CONTENT)
async def record_template_use(
    template_id: str,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
):
    """Count one use of a template the user can read."""
    await _readable(service, template_id, tenant_id, user_id)
    await service.increment_usage(template_id)
    await service.db.commit()


@router.post(
    "/{template_id}/instantiate",
    response_model=WorkflowResponse,
    status_code=status.HTTP_201_CREATED,
)
async def instantiate_template_route(
    template_id: str,
    body: TemplateInstantiateRequest | None = None,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
    _: dict = Depends(require_role("admin", "analyst")),
):
    """Create a new workflow (and, unless a chat is given, a new chat) from a template."""
    template = await _readable(service, template_id, tenant_id, user_id)
    body = body or TemplateInstantiateRequest()

    try:
        graph = instantiate_template(template.data)
    except WorkflowValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    name = body.name or template.name
    db = service.db
    chat_id = await claim_chat(db, body.chat_id, name, tenant_id, user_id)
    workflow = Workflow(
        name=name,
        description=template.description,
        graph_json=graph,
        chat_id=chat_id,
        tenant_id=tenant_id,
        created_by=user_id,
    )
    db.add(workflow)
    await db.flush()
    await service.increment_usage(template.id)

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.CREATED,
        resource_type=AuditResourceType.WORKFLOW,
        resource_id=workflow.id,
        metadata={"template_id": template.id, "chat_id": str(chat_id)},
    )

    await db.commit()
    await db.refresh(workflow)
    return WorkflowResponse.model_validate(workflow)
