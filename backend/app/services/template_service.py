"""Workflow template storage: system seeding, visibility rules and usage counts.

A user sees their own templates plus public ones. Public user templates stay
inside their tenant; system templates (tenant_id NULL) are visible to all.
"""

from uuid import UUID

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.template import TemplateCategory, WorkflowTemplate
from app.services.template_registry import SYSTEM_CATEGORIES, get_system_templates

logger = structlog.stdlib.get_logger(__name__)


class TemplateAccessError(Exception):
    """Raised when a user reads a private template or mutates one they do not own."""


class TemplateService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _existing_ids(self, model) -> set[str]:
        return set((await self.db.execute(select(model.id))).scalars().all())

    async def _insert_if_absent(self, row) -> bool:
        """Insert under a savepoint; a concurrent seeder winning the race is not an error."""
        try:
            async with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError:
            logger.debug("system_template_row_exists", row_id=row.id)
            return False
        return True

    async def seed_system_templates(self) -> int:
        """Insert missing system categories and templates; returns how many rows were added."""
        added = 0
        existing_categories = await self._existing_ids(TemplateCategory)
        for category in SYSTEM_CATEGORIES:
            if category.id in existing_categories:
                continue
            added += await self._insert_if_absent(
                TemplateCategory(
                    id=category.id,
                    name=category.name,
                    description=category.description,
                    display_order=category.display_order,
                    is_system=True,
                )
            )

        existing_templates = await self._existing_ids(WorkflowTemplate)
        for template in get_system_templates():
            if template.id in existing_templates:
                continue
            added += await self._insert_if_absent(
                WorkflowTemplate(
                    id=template.id,
                    name=template.name,
                    description=template.description,
                    use_case=template.use_case,
                    category_id=template.category_id,
                    data=template.data,
                    tags=list(template.tags),
                    is_public=True,
                    usage_count=0,
                )
            )

        if added:
            logger.info("system_templates_seeded", added=added)
        return added

    def _visible(self, tenant_id: UUID, user_id: UUID):
        return or_(
            WorkflowTemplate.user_id == user_id,
            (WorkflowTemplate.is_public.is_(True))
            & or_(WorkflowTemplate.tenant_id.is_(None), WorkflowTemplate.tenant_id == tenant_id),
        )

    async def list_templates(
        self,
        tenant_id: UUID,
        user_id: UUID,
        category_id: str | None = None,
        is_public: bool | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        """Own and public templates, most used first then newest."""
        conditions = [self._visible(tenant_id, user_id)]
        if category_id:
            conditions.append(WorkflowTemplate.category_id == category_id)
        if is_public is not None:
            conditions.append(WorkflowTemplate.is_public.is_(is_public))
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    WorkflowTemplate.name.ilike(pattern),
                    WorkflowTemplate.description.ilike(pattern),
                    WorkflowTemplate.use_case.ilike(pattern),
                )
            )

        total = (
            await self.db.execute(select(func.count(WorkflowTemplate.id)).where(*conditions))
        ).scalar_one()
        result = await self.db.execute(
            select(WorkflowTemplate)
            .where(*conditions)
            .order_by(WorkflowTemplate.usage_count.desc(), WorkflowTemplate.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return {
            "items": result.scalars().all(),
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    async def list_categories(self) -> list[TemplateCategory]:
        result = await self.db.execute(
            select(TemplateCategory).order_by(TemplateCategory.display_order, TemplateCategory.name)
        )
        return list(result.scalars().all())

    async def get_category(self, category_id: str) -> TemplateCategory | None:
        return await self.db.get(TemplateCategory, category_id)

    async def get_template(self, template_id: str) -> WorkflowTemplate | None:
        return await self.db.get(WorkflowTemplate, template_id)

    async def get_readable(self, template_id: str, tenant_id: UUID, user_id: UUID) -> WorkflowTemplate | None:
        """Template if it exists; raises TemplateAccessError when it is private to someone else."""
        template = await self.get_template(template_id)
        if template is None:
            return None
        if template.user_id == user_id:
            return template
        if template.is_public and template.tenant_id in (None, tenant_id):
            return template
        raise TemplateAccessError("Access denied")

    async def get_owned(self, template_id: str, user_id: UUID) -> WorkflowTemplate | None:
        template = await self.get_template(template_id)
        if template is None:
            return None
        if template.user_id != user_id:
            raise TemplateAccessError("Access denied")
        return template

    async def create_template(
        self,
        tenant_id: UUID,
        user_id: UUID,
        name: str,
        description: str,
        category_id: str,
        data: dict,
        use_case: str | None = None,
        tags: list[str] | None = None,
        is_public: bool = False,
    ) -> WorkflowTemplate:
        template = WorkflowTemplate(
            name=name,
            description=description,
            use_case=use_case,
            category_id=category_id,
            data=data,
            tags=tags or [],
            is_public=is_public,
            user_id=user_id,
            tenant_id=tenant_id,
            usage_count=0,
        )
        self.db.add(template)
        await self.db.flush()
        return template

    async def increment_usage(self, template_id: str) -> None:
        await self.db.execute(
            update(WorkflowTemplate)
            .where(WorkflowTemplate.id == template_id)
            .values(usage_count=WorkflowTemplate.usage_count + 1)
        )
