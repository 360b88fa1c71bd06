#!/usr/bin/env python
"""Seed development database with required data.

Run this after migrations to set up a working dev environment:
    python scripts/seed_dev.py

Creates:
- Dev user (matches settings.dev_user_id / settings.dev_tenant_id)
- System template categories and templates
- A sample chat whose workflow is built from the CSV analysis template
"""

import asyncio
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from uuid import UUID

from sqlalchemy import select

from app.core.config import settings
from app.core.database import async_session
from app.models.chat import Chat, ChatVisibility
from app.models.user import User, UserRole
from app.models.workflow import Workflow
from app.services.template_registry import instantiate_template
from app.services.template_service import TemplateService

SAMPLE_TEMPLATE_ID = "sys-csv-analysis"
SAMPLE_CHAT_TITLE = "Sample CSV Analysis"


async def seed_dev_user() -> bool:
    """Create the dev user if it doesn't exist."""
    async with async_session() as db:
        user_id = UUID(settings.dev_user_id)
        tenant_id = UUID(settings.dev_tenant_id)

        result = await db.execute(select(User).where(User.id == user_id))
        if result.scalar_one_or_none():
            print(f"Dev user already exists: {user_id}")
            return False

        user = User(
            id=user_id,
            tenant_id=tenant_id,
            email="dev@insightflow.local",
            hashed_password="dev-mode-no-password",
            full_name="Dev User",
            role=UserRole.ADMIN,
        )
        db.add(user)
        await db.commit()
        print(f"Created dev user: {user_id} (tenant: {tenant_id})")
        return True


async def seed_templates() -> int:
    async with async_session() as db:
        added = await TemplateService(db).seed_system_templates()
        await db.commit()
        return added


async def seed_sample_chat() -> bool:
    """A public chat holding a workflow instantiated from a system template."""
    async with async_session() as db:
        user_id = UUID(settings.dev_user_id)
        tenant_id = UUID(settings.dev_tenant_id)

        existing = await db.execute(
            select(Chat).where(Chat.user_id == user_id, Chat.title == SAMPLE_CHAT_TITLE)
        )
        if existing.scalar_one_or_none():
            print("Sample chat already exists")
            return False

        template = await TemplateService(db).get_template(SAMPLE_TEMPLATE_ID)
        if template is None:
            print(f"Template {SAMPLE_TEMPLATE_ID} missing, skipping sample chat")
            return False

        chat = Chat(
            tenant_id=tenant_id,
            user_id=user_id,
            title=SAMPLE_CHAT_TITLE,
            visibility=ChatVisibility.PUBLIC,
        )
        db.add(chat)
        await db.flush()
        db.add(
            Workflow(
                name=template.name,
                description=template.description,
                graph_json=instantiate_template(template.data),
                chat_id=chat.id,
                tenant_id=tenant_id,
                created_by=user_id,
            )
        )
        await db.commit()
        print(f"Created sample chat: {chat.id}")
        return True


async def main():
    print("Seeding development database...")
    print(f"  Dev user ID: {settings.dev_user_id}")
    print(f"  Dev tenant ID: {settings.dev_tenant_id}")
    print()

    created = await seed_dev_user()
    if created:
        print("\nDev user seed complete!")
    else:
        print("\nDev user already exists.")

    added = await seed_templates()
    print(f"\nSeeded {added} template rows.")

    if await seed_sample_chat():
        print("\nSample chat seed complete!")
    else:
        print("\nSample chat skipped or already done.")


if __name__ == "__main__":
    asyncio.run(main())
