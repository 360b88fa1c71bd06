"""Runs stored workflows on the engine and tracks them in Redis.

Each execution has a JSON status record under
insightflow:{tenant_id}:execution:{execution_id}. Node status changes are
written to the record and published on the execution's WebSocket channel.
Cancellation is cross-process: the cancel endpoint flips the record to
"cancelled" and the running engine polls the record between nodes.
"""

import json
import time
from datetime import UTC, datetime
from uuid import UUID, uuid4

import structlog
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.metrics import workflow_execution_duration_seconds, workflow_executions_total
from app.core.redis import execution_key
from app.engine.connection_manager import ConnectionManager
from app.engine.dashboard_manager import DashboardManager
from app.engine.errors import NodeExecutionError
from app.engine.execution_engine import NodeStatus
from app.engine.workflow_manager import WorkflowManager
from app.models.workflow import Workflow
from app.services.dashboard_service import DashboardService
from app.services.websocket_manager import WebSocketManager

logger = structlog.stdlib.get_logger(__name__)

FINISHED_STATUSES = frozenset({"completed", "failed", "cancelled"})


class ExecutionNotFound(LookupError):
    pass


class ExecutionFinished(Exception):
    """The execution already reached a terminal status."""


def _now() -> str:
    return datetime.now(UTC).isoformat()


class ExecutionService:
    def __init__(self, db: AsyncSession, redis: Redis, ws_manager: WebSocketManager):
        self.db = db
        self.redis = redis
        self.ws_manager = ws_manager
        self.dashboard_manager = DashboardManager()

    async def _save(self, tenant_id: UUID, record: dict) -> None:
        """Write the record, keeping any terminal status already stored.

        The read and the write share one WATCH/MULTI transaction, so a cancel
        that lands mid-run is never overwritten by a later status.
        """
        key = execution_key(tenant_id, record["id"])

        async def write(pipe) -> None:
            raw = await pipe.get(key)
            stored = json.loads(raw).get("status") if raw else None
            if stored in FINISHED_STATUSES and stored != record["status"]:
                record["status"] = stored
            pipe.multi()
            pipe.set(key, json.dumps(record), ex=settings.engine.execution_ttl)

        await self.redis.transaction(write, key)

    async def get_record(self, tenant_id: UUID, execution_id: UUID) -> dict:
        raw = await self.redis.get(execution_key(tenant_id, execution_id))
        if not raw:
            raise ExecutionNotFound(str(execution_id))
        return json.loads(raw)

    async def run(
        self,
        workflow: Workflow,
        tenant_id: UUID,
        node_id: str | None = None,
        include_dependencies: bool = True,
    ) -> dict:
        """Execute the workflow (or one node) to completion and return the final record.

        Raises ValueError for a cyclic graph and KeyError for an unknown node_id,
        both before any execution record is written.
        """
        execution_id = uuid4()
        record = {
            "id": str(execution_id),
            "workflow_id": str(workflow.id),
            "tenant_id": str(tenant_id),
            "status": "pending",
            "node_statuses": {},
            "started_at": _now(),
            "completed_at": None,
            "dashboard_items_saved": 0,
            "error": None,
        }

        async def on_status(nid, status, outputs, error, ctx) -> None:
            node = manager.nodes[nid]
            record["node_statuses"][nid] = node.status_dict()
            if await cancel_requested():
                record["status"] = "cancelled"
            await self._save(tenant_id, record)
            data = {"error": error} if error else {}
            if node.rows_processed is not None:
                data["rows_processed"] = node.rows_processed
            await self.ws_manager.publish_execution_status(
                tenant_id=tenant_id,
                execution_id=execution_id,
                node_id=nid,
                status=status.value,
                data=data,
            )

        async def cancel_requested() -> bool:
            raw = await self.redis.get(execution_key(tenant_id, execution_id))
            return bool(raw) and json.loads(raw).get("status") == "cancelled"

        manager = WorkflowManager(status_callback=on_status, should_cancel=cancel_requested)
        manager.set_workflow(workflow.graph_json or {})
        if node_id is not None and node_id not in manager.nodes:
            raise KeyError(node_id)
        ConnectionManager.calculate_execution_order(
            [{"id": nid} for nid in manager.nodes], manager.edges
        )
        await self._save(tenant_id, record)

        start = time.perf_counter()
        with structlog.contextvars.bound_contextvars(execution_id=str(execution_id)):
            record["status"] = "running"
            await self._save(tenant_id, record)
            await self.ws_manager.publish_execution_status(
                tenant_id=tenant_id,
                execution_id=execution_id,
                node_id="__workflow__",
                status="running",
            )

            try:
                if node_id is None:
                    await manager.execute_workflow()
                else:
                    await manager.execute_node(node_id, include_dependencies)
            except NodeExecutionError as exc:
                record["error"] = str(exc)

            # A cancel may have landed in Redis while nodes were running
            latest = await self.get_record(tenant_id, execution_id)
            statuses = {n.status for n in manager.nodes.values()}
            if "cancelled" in (latest.get("status"), record["status"]) or NodeStatus.CANCELLED in statuses:
                record["status"] = "cancelled"
            elif record["error"] or NodeStatus.ERROR in statuses:
                record["status"] = "failed"
            else:
                record["status"] = "completed"

            if workflow.chat_id is not None:
                record["dashboard_items_saved"] = await self._persist_dashboard_items(
                    manager, tenant_id, workflow.chat_id
                )

            record["node_statuses"] = manager.node_statuses()
            record["completed_at"] = _now()
            await self._save(tenant_id, record)

            elapsed = time.perf_counter() - start
            workflow_executions_total.labels(status=record["status"]).inc()
            workflow_execution_duration_seconds.observe(elapsed)
            logger.info(
                "workflow_execution_finished",
                workflow_id=str(workflow.id),
                status=record["status"],
                duration_s=round(elapsed, 3),
            )
            await self.ws_manager.publish_execution_status(
                tenant_id=tenant_id,
                execution_id=execution_id,
                node_id="__workflow__",
                status=record["status"],
                data={"error": record["error"]} if record["error"] else None,
            )
        return record

    async def _persist_dashboard_items(
        self, manager: WorkflowManager, tenant_id: UUID, chat_id: UUID
    ) -> int:
        service = DashboardService(self.db)
        saved = 0
        for node in manager.nodes.values():
            if node.status != NodeStatus.SUCCESS or not node.dashboard_items:
                continue
            result = await self.dashboard_manager.persist_items(
                service, tenant_id, chat_id, node.id, node.dashboard_items
            )
            saved += result["saved_count"]
            if result["saved_count"]:
                await self.ws_manager.publish_dashboard_update(
                    tenant_id=tenant_id,
                    chat_id=chat_id,
                    node_id=node.id,
                    item_keys=[item["id"] for item in node.dashboard_items],
                )
        await self.db.commit()
        return saved

    async def cancel(self, tenant_id: UUID, execution_id: UUID) -> dict:
        """Mark a pending or running execution cancelled; the engine stops before its next node."""
        key = execution_key(tenant_id, execution_id)
        record: dict = {}

        async def write(pipe) -> None:
            raw = await pipe.get(key)
            if not raw:
                raise ExecutionNotFound(str(execution_id))
            record.clear()
            record.update(json.loads(raw))
            if record["status"] in FINISHED_STATUSES:
                raise ExecutionFinished(record["status"])
            record["status"] = "cancelled"
            record["completed_at"] = _now()
            pipe.multi()
            pipe.set(key, json.dumps(record), ex=settings.engine.execution_ttl)

        await self.redis.transaction(write, key)
        await self.ws_manager.publish_execution_status(
            tenant_id=tenant_id,
            execution_id=execution_id,
            node_id="__workflow__",
            status="cancelled",
        )
        logger.info("workflow_execution_cancelled", execution_id=str(execution_id))
        return record
