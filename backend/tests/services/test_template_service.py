"""Template seeding, visibility rules and the system template catalogue."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.engine.connection_manager import ConnectionManager
from app.engine.registry import get_registry
from app.models.template import WorkflowTemplate
from app.services.template_registry import (
    SYSTEM_CATEGORY_IDS,
    get_system_templates,
    instantiate_template,
)
from app.services.template_service import TemplateAccessError, TemplateService

TENANT = uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")
OTHER_TENANT = uuid.UUID("cccccccc-cccc-cccc-cccc-cccccccccccc")
OWNER = uuid.UUID("bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb")
COLLEAGUE = uuid.UUID("dddddddd-dddd-dddd-dddd-dddddddddddd")


@pytest.mark.parametrize("template", get_system_templates(), ids=lambda t: t.id)
def test_system_template_graphs_are_runnable(template):
    registry = get_registry()
    nodes = template.data["nodes"]
    assert template.category_id in SYSTEM_CATEGORY_IDS
    assert all(registry.get_factory(n["data"]["factoryId"]) for n in nodes)
    # A valid DAG: the execution order covers every node
    order = ConnectionManager.calculate_execution_order(nodes, template.data["edges"])
    assert sorted(order) == sorted(n["id"] for n in nodes)


def test_instantiate_gives_fresh_ids():
    template = get_system_templates()[0]
    first = instantiate_template(template.data)
    second = instantiate_template(template.data)
    first_ids = {n["id"] for n in first["nodes"]}
    assert first_ids.isdisjoint(n["id"] for n in template.data["nodes"])
    assert first_ids.isdisjoint(n["id"] for n in second["nodes"])
    assert all(e["source"] in first_ids and e["target"] in first_ids for e in first["edges"])


async def test_seeding_is_idempotent(db_session):
    service = TemplateService(db_session)
    added = await service.seed_system_templates()
    assert added == len(get_system_templates()) + len(SYSTEM_CATEGORY_IDS)
    assert await service.seed_system_templates() == 0

    categories = await service.list_categories()
    assert [c.display_order for c in categories] == sorted(c.display_order for c in categories)


async def test_seeding_tolerates_rows_added_by_a_concurrent_request(db_engine, db_session):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as other:
        await TemplateService(other).seed_system_templates()
        await other.commit()

    # Both requests saw an empty table before either inserted
    service = TemplateService(db_session)
    with patch.object(service, "_existing_ids", AsyncMock(return_value=set())):
        assert await service.seed_system_templates() == 0
    await db_session.commit()

    count = (await db_session.execute(select(func.count(WorkflowTemplate.id)))).scalar_one()
    assert count == len(get_system_templates())


@pytest.fixture
async def service(db_session):
    service = TemplateService(db_session)
    await service.seed_system_templates()
    await db_session.commit()
    return service


async def _user_template(service: TemplateService, **overrides):
    fields = {
        "tenant_id": TENANT,
        "user_id": OWNER,
        "name": "Churn scoring",
        "description": "Scores customers by churn risk",
        "category_id": "analytics",
        "data": {"nodes": [], "edges": []},
    }
    fields.update(overrides)
    template = await service.create_template(**fields)
    await service.db.commit()
    return template


async def test_private_template_is_owner_only(service):
    template = await _user_template(service)

    assert (await service.get_readable(template.id, TENANT, OWNER)).id == template.id
    with pytest.raises(TemplateAccessError):
        await service.get_readable(template.id, TENANT, COLLEAGUE)

    listed = await service.list_templates(TENANT, COLLEAGUE)
    assert template.id not in {t.id for t in listed["items"]}


async def test_public_template_stays_in_tenant(service):
    template = await _user_template(service, is_public=True)

    assert await service.get_readable(template.id, TENANT, COLLEAGUE) is not None
    with pytest.raises(TemplateAccessError):
        await service.get_readable(template.id, OTHER_TENANT, COLLEAGUE)
    with pytest.raises(TemplateAccessError):
        await service.get_owned(template.id, COLLEAGUE)


async def test_system_templates_visible_everywhere_but_not_owned(service):
    listed = await service.list_templates(OTHER_TENANT, COLLEAGUE)
    assert listed["total"] == len(get_system_templates())
    with pytest.raises(TemplateAccessError):
        await service.get_owned("sys-csv-analysis", OWNER)


async def test_missing_template_returns_none(service):
    assert await service.get_readable("nope", TENANT, OWNER) is None
    assert await service.get_owned("nope", OWNER) is None


async def test_list_orders_by_usage_and_filters(service):
    await service.increment_usage("sys-csv-analysis")
    await service.increment_usage("sys-csv-analysis")
    await service.db.commit()

    listed = await service.list_templates(TENANT, OWNER)
    assert listed["items"][0].id == "sys-csv-analysis"
    assert listed["items"][0].usage_count == 2

    by_category = await service.list_templates(TENANT, OWNER, category_id="visualization")
    assert [t.id for t in by_category["items"]] == ["sys-data-visualization"]

    paged = await service.list_templates(TENANT, OWNER, page=2, page_size=3)
    assert paged["total"] == 4
    assert len(paged["items"]) == 1
