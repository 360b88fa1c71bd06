"""SQLAlchemy ORM models for chats, workflows, templates and dashboard items.

Import all models here so Alembic autogenerate can discover them.
"""

from app.models.audit_log import AuditLog
from app.models.chat import Chat, Message
from app.models.dashboard_item import DashboardItem, Report
from app.models.template import TemplateCategory, WorkflowTemplate
from app.models.user import User
from app.models.workflow import Workflow, WorkflowVersion

__all__ = [
    "User",
    "Chat",
    "Message",
    "Workflow",
    "WorkflowVersion",
    "DashboardItem",
    "Report",
    "TemplateCategory",
    "WorkflowTemplate",
    "AuditLog",
]
