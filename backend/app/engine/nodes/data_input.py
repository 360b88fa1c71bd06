"""CSV reader node: fetches a CSV over HTTP and infers column types."""

import csv
import io
from datetime import datetime
from urllib.parse import urlparse

import httpx

from app.core.config import settings as app_settings
from app.engine.context import ExecutionContext
from app.engine.data_table import (
    Cell,
    ColumnSpec,
    DataTable,
    DataTableContainer,
    DataTableSpec,
)
from app.engine.node_model import DashboardOutputConfig, NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings
from app.engine.utils import to_number

_DATE_FORMATS = ("%m/%d/%Y", "%d/%m/%Y", "%Y/%m/%d", "%b %d, %Y", "%d %b %Y", "%B %d, %Y")


def parse_date(text: str) -> datetime | None:
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def infer_csv_column_type(samples: list[str]) -> str:
    """number if >80% of non-empty samples parse as numbers, date if >70% parse as dates."""
    values = [v for v in samples if v != ""]
    numeric = sum(1 for v in values if to_number(v) is not None)
    if numeric > len(values) * 0.8:
        return "number"
    dates = sum(1 for v in values if parse_date(v) is not None)
    if dates > len(values) * 0.7:
        return "date"
    return "string"


def parse_csv_text(text: str, sample_size: int = 10) -> DataTable:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if not lines:
        raise ValueError("CSV file is empty")

    records = [[value.strip() for value in row] for row in csv.reader(io.StringIO("\n".join(lines)))]
    headers, rows = records[0], records[1:]
    if not rows:
        raise ValueError("CSV file contains no data rows")

    def value_at(row: list[str], index: int) -> str:
        return row[index] if index < len(row) else ""

    types = [
        infer_csv_column_type([value_at(row, i) for row in rows[:sample_size]])
        for i in range(len(headers))
    ]
    spec = DataTableSpec(tuple(ColumnSpec(h, t) for h, t in zip(headers, types)))

    container = DataTableContainer(spec)
    for row_index, row in enumerate(rows):
        cells = []
        for i, column_type in enumerate(types):
            value: object = value_at(row, i)
            if column_type == "number" and value != "":
                number = to_number(value)
                value = 0 if number is None else number
            elif column_type == "date" and value != "":
                parsed = parse_date(str(value))
                value = parsed.isoformat() if parsed else value
            cells.append(Cell(column_type, value))
        container.add_row(f"row-{row_index}", cells)
    return container.close()


@register_node(
    "data-input",
    "Data Input",
    "Data Sources",
    "Load a CSV file from a URL, an upload or a chat attachment",
)
class DataInputNodeModel(NodeModel):
    input_ports = 0
    output_ports = 1

    def __init__(self) -> None:
        super().__init__()
        self.csv_url = ""
        self.csv_source_type = "url"
        self.csv_file_name = ""
        self.configure_dashboard_output(
            [
                DashboardOutputConfig(
                    port_index=0,
                    output_type="table",
                    title="Data Input",
                    description="Data from the CSV file",
                )
            ]
        )

    def load_settings(self, settings: NodeSettings) -> None:
        self.csv_url = settings.get_string("csv_url", "")
        self.csv_source_type = settings.get_string("csv_source_type", "url")
        self.csv_file_name = settings.get_string("csv_file_name", "")

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("csv_url", self.csv_url)
        settings.set("csv_source_type", self.csv_source_type)
        settings.set("csv_file_name", self.csv_file_name)

    def validate_settings(self, settings: NodeSettings) -> None:
        url = settings.get_string("csv_url", "")
        if not url:
            raise ValueError("CSV URL is required")
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Invalid CSV URL format")

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        return [DataTableSpec()]

    async def fetch_csv(self, url: str) -> str:
        async with httpx.AsyncClient(
            timeout=app_settings.engine.csv_fetch_timeout, follow_redirects=True
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.text

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        if not self.csv_url:
            raise ValueError("CSV URL is required. Please configure the node.")

        try:
            ctx.set_progress(
                0.1,
                f"Loading data from {self.csv_file_name}..." if self.csv_file_name else "Fetching CSV data...",
            )
            text = await self.fetch_csv(self.csv_url)
            ctx.set_progress(0.5, "Parsing CSV data...")
            table = parse_csv_text(text, app_settings.engine.csv_type_sample_size)
        except (httpx.HTTPError, ValueError) as exc:
            raise ValueError(f"Failed to load CSV data: {exc}") from exc

        ctx.set_progress(1.0, "Completed")
        return [table]
