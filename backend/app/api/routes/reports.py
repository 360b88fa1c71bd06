"""Report endpoints: markdown reports written for a chat."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    get_current_tenant_id,
    get_current_user_id,
    get_db,
    load_chat,
    require_role,
)
from app.models.audit_log import AuditAction, AuditResourceType
from app.models.dashboard_item import Report, ReportUserType
from app.schemas.dashboard_item import ReportCreate, ReportListResponse, ReportResponse
from app.services.audit_service import AuditService

router = APIRouter()


async def _get_report(db: AsyncSession, report_id: UUID, tenant_id: UUID) -> Report:
    result = await db.execute(
        select(Report).where(Report.id == report_id, Report.tenant_id == tenant_id)
    )
    report = result.scalar_one_or_none()
    if not report:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


@router.post("", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    body: ReportCreate,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    await load_chat(db, body.chat_id, tenant_id, user_id, owner=True)
    report = Report(
        tenant_id=tenant_id,
        chat_id=body.chat_id,
        title=body.title,
        content=body.content,
        user_type=ReportUserType(body.user_type),
    )
    db.add(report)
    await db.flush()

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.CREATED,
        resource_type=AuditResourceType.REPORT,
        resource_id=report.id,
        metadata={"title": body.title},
    )

    await db.commit()
    await db.refresh(report)
    return ReportResponse.model_validate(report)


@router.get("", response_model=ReportListResponse)
async def list_reports(
    chat_id: UUID = Query(...),
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await load_chat(db, chat_id, tenant_id, user_id)
    result = await db.execute(
        select(Report)
        .where(Report.chat_id == chat_id, Report.tenant_id == tenant_id)
        .order_by(Report.created_at.desc())
    )
    reports = result.scalars().all()
    return ReportListResponse(
        items=[ReportResponse.model_validate(r) for r in reports],
        total=len(reports),
    )


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(
    report_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    report = await _get_report(db, report_id, tenant_id)
    await load_chat(db, report.chat_id, tenant_id, user_id)
    return ReportResponse.model_validate(report)


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_id: UUID,
    tenant_id: UUID = Depends(get_current_tenant_id),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    _: dict = Depends(require_role("admin", "analyst")),
):
    report = await _get_report(db, report_id, tenant_id)
    await load_chat(db, report.chat_id, tenant_id, user_id, owner=True)

    audit = AuditService(db)
    await audit.log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=AuditAction.DELETED,
        resource_type=AuditResourceType.REPORT,
        resource_id=report.id,
        metadata={"title": report.title},
    )

    await db.delete(report)
    await db.commit()
