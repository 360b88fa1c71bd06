"""Chat lookups with visibility rules, and chat creation for new workflows.

A private chat is only visible to its owner. A public chat is readable by
everyone in the same tenant but can only be changed by its owner.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat import Chat, ChatVisibility
from app.models.workflow import Workflow

WORKFLOW_SUFFIX = " Workflow"


class ChatAccessError(Exception):
    pass


def chat_title_for_workflow(workflow_name: str) -> str:
    """Chat title derived from a workflow name, without a trailing " Workflow"."""
    title = workflow_name.strip()
    if title.endswith(WORKFLOW_SUFFIX) and len(title) > len(WORKFLOW_SUFFIX):
        title = title[: -len(WORKFLOW_SUFFIX)].rstrip()
    return title or workflow_name


def workflow_name_for_chat(chat_title: str) -> str:
    return f"{chat_title}{WORKFLOW_SUFFIX}"


async def get_readable_chat(
    db: AsyncSession, chat_id: UUID, tenant_id: UUID, user_id: UUID
) -> Chat | None:
    result = await db.execute(select(Chat).where(Chat.id == chat_id, Chat.tenant_id == tenant_id))
    chat = result.scalar_one_or_none()
    if chat is None:
        return None
    if chat.user_id != user_id and chat.visibility != ChatVisibility.PUBLIC:
        raise ChatAccessError("Access denied")
    return chat


async def get_owned_chat(
    db: AsyncSession, chat_id: UUID, tenant_id: UUID, user_id: UUID
) -> Chat | None:
    chat = await get_readable_chat(db, chat_id, tenant_id, user_id)
    if chat is not None and chat.user_id != user_id:
        raise ChatAccessError("Access denied")
    return chat


async def get_chat_workflow(db: AsyncSession, chat_id: UUID, tenant_id: UUID) -> Workflow | None:
    result = await db.execute(
        select(Workflow).where(Workflow.chat_id == chat_id, Workflow.tenant_id == tenant_id)
    )
    return result.scalar_one_or_none()


async def create_chat(
    db: AsyncSession,
    tenant_id: UUID,
    user_id: UUID,
    title: str,
    visibility: ChatVisibility = ChatVisibility.PRIVATE,
) -> Chat:
    chat = Chat(tenant_id=tenant_id, user_id=user_id, title=title, visibility=visibility)
    db.add(chat)
    await db.flush()
    return chat
