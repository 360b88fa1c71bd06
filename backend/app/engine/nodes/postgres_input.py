"""PostgreSQL reader node.

Connects to a user-supplied database with the same async SQLAlchemy/asyncpg
stack the application itself uses, and reads either a whole table (paged)
or the result of a read-only query.
"""

import datetime as dt
import re
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import URL, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import settings as app_settings
from app.engine.context import ExecutionContext
from app.engine.data_table import ColumnSpec, DataTable, DataTableSpec
from app.engine.node_model import DashboardOutputConfig, NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings

logger = structlog.stdlib.get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
_READ_ONLY = re.compile(r"^\s*(select|with)\b", re.IGNORECASE)


def cell_type_for(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, (dt.date, dt.datetime)):
        return "date"
    return "string"


def normalize_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, (int, float, bool, str)):
        return value
    return str(value)


def rows_to_table(columns: list[str], rows: list[tuple]) -> DataTable:
    types = []
    for index, _name in enumerate(columns):
        found = next((cell_type_for(r[index]) for r in rows if r[index] is not None), None)
        types.append(found or "string")
    spec = DataTableSpec(tuple(ColumnSpec(n, t) for n, t in zip(columns, types)))
    return DataTable.from_records(
        spec,
        [{c: normalize_value(r[i]) for i, c in enumerate(columns)} for r in rows],
        key_prefix="row",
    )


@register_node(
    "postgres-input",
    "PostgreSQL Input",
    "Data Sources",
    "Read a table or query result from a PostgreSQL database",
)
class PostgresInputNodeModel(NodeModel):
    input_ports = 0
    output_ports = 1

    def __init__(self) -> None:
        super().__init__()
        self.host = "localhost"
        self.port = 5432
        self.database = ""
        self.username = ""
        self.password = ""
        self.ssl = False
        self.selected_table = ""
        self.query = ""
        self.page_size = app_settings.engine.postgres_page_size
        self.configure_dashboard_output(
            [
                DashboardOutputConfig(
                    port_index=0,
                    output_type="table",
                    title="PostgreSQL Data",
                    description="Data from the selected PostgreSQL table",
                )
            ]
        )

    def load_settings(self, settings: NodeSettings) -> None:
        self.host = settings.get_string("host", "localhost")
        self.port = settings.get_int("port", 5432)
        self.database = settings.get_string("database", "")
        self.username = settings.get_string("username", "")
        self.password = settings.get_string("password", "")
        self.ssl = settings.get_boolean("ssl", False)
        self.selected_table = settings.get_string("selectedTable", "")
        self.query = settings.get_string("query", "")
        self.page_size = max(1, settings.get_int("pageSize", app_settings.engine.postgres_page_size))

    def save_settings(self, settings: NodeSettings) -> None:
        for key, value in (
            ("host", self.host),
            ("port", self.port),
            ("database", self.database),
            ("username", self.username),
            ("password", self.password),
            ("ssl", self.ssl),
            ("selectedTable", self.selected_table),
            ("query", self.query),
            ("pageSize", self.page_size),
        ):
            settings.set(key, value)

    def validate_settings(self, settings: NodeSettings) -> None:
        for key in ("host", "database", "username", "password"):
            if not settings.get_string(key, ""):
                raise ValueError("Missing required connection parameters")
        table = settings.get_string("selectedTable", "")
        query = settings.get_string("query", "")
        if not table and not query:
            raise ValueError("No table selected")
        if table and not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table}")
        if query and not _READ_ONLY.match(query):
            raise ValueError("Only SELECT queries are allowed")

    def _settings(self) -> NodeSettings:
        settings = NodeSettings()
        self.save_settings(settings)
        return settings

    def connection_url(self) -> URL:
        return URL.create(
            "postgresql+asyncpg",
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    async def fetch_rows(self, ctx: ExecutionContext) -> tuple[list[str], list[tuple]]:
        engine = create_async_engine(
            self.connection_url(),
            connect_args={"ssl": "require"} if self.ssl else {},
            pool_pre_ping=False,
        )
        try:
            async with engine.connect() as conn:
                if self.query:
                    result = await conn.execute(text(self.query))
                    return list(result.keys()), [tuple(r) for r in result.fetchall()]

                columns: list[str] = []
                rows: list[tuple] = []
                offset = 0
                while True:
                    ctx.check_canceled()
                    # Identifier validated in validate_settings
                    result = await conn.execute(
                        text(f"SELECT * FROM {self.selected_table} LIMIT :limit OFFSET :offset"),
                        {"limit": self.page_size, "offset": offset},
                    )
                    columns = list(result.keys())
                    page = [tuple(r) for r in result.fetchall()]
                    rows.extend(page)
                    ctx.set_progress(0.5, f"Fetched {len(rows)} rows")
                    if len(page) < self.page_size:
                        return columns, rows
                    offset += self.page_size
        finally:
            await engine.dispose()

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        self.validate_settings(self._settings())
        ctx.set_progress(0.0, "Loading PostgreSQL data...")
        try:
            columns, rows = await self.fetch_rows(ctx)
        except (OSError, SQLAlchemyError) as exc:
            raise ValueError(f"PostgreSQL table fetch failed: {exc}") from exc
        logger.info("postgres_rows_fetched", table=self.selected_table or None, rows=len(rows))
        ctx.set_progress(1.0, "PostgreSQL data loaded")
        return [rows_to_table(columns, rows)]
