"""Dashboard item materialization: node outputs to dashboard items, CSV export.

Items produced here are plain dicts. Persisting them is delegated to
DashboardService, which compacts the payload per item type.
"""

import csv
import io
import json
import random
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from app.engine.context import ExecutionContext
from app.engine.data_table import DataTable
from app.engine.utils import (
    calculate_column_statistics,
    convert_output_to_dashboard_item,
    determine_output_type,
    format_value,
)

if TYPE_CHECKING:
    from app.services.dashboard_service import DashboardService

logger = structlog.stdlib.get_logger(__name__)


class DashboardManager:
    def process_node_outputs(
        self,
        node_id: str,
        node_label: str,
        outputs: list[Any],
        ctx: ExecutionContext | None = None,
    ) -> list[dict]:
        """Items the node produced itself, else one table item per table output."""
        if ctx is not None and ctx.dashboard_items:
            return list(ctx.dashboard_items)

        items = []
        for index, output in enumerate(outputs):
            if not isinstance(output, DataTable):
                continue
            item = convert_output_to_dashboard_item(node_id, node_label, "table", output)
            if item is None:
                continue
            item["id"] = f"{node_id}-table-{index}-{item['id'].rsplit('-', 1)[-1]}"
            item["title"] = f"{node_label} - Output {index + 1}"
            item["description"] = f"{output.size} rows, {len(output.spec.columns)} columns"
            items.append(item)
        return items

    @staticmethod
    def calculate_table_statistics(table: DataTable) -> list[dict]:
        return calculate_column_statistics(table)

    @staticmethod
    def determine_output_type(output: Any) -> str:
        return determine_output_type(output)

    @staticmethod
    def format_value(value: Any) -> str:
        return format_value(value)

    @staticmethod
    def sample_table_data(table: DataTable, max_rows: int = 10, seed: int | None = None) -> dict:
        """Random sample of rows (without replacement) plus column statistics."""
        rows = list(table.rows)
        if len(rows) > max_rows:
            rng = random.Random(seed)
            picked = sorted(rng.sample(range(len(rows)), max_rows))
            rows = [rows[i] for i in picked]
        return {
            "columns": table.spec.to_list(),
            "rows": [[cell.value for cell in row.cells] for row in rows],
            "totalRows": table.size,
            "sampleSize": len(rows),
            "statistics": calculate_column_statistics(table),
        }

    def format_table_for_agent(self, table: DataTable, max_rows: int = 10) -> str:
        """Markdown summary of a table for inclusion in a chat message."""
        sample = self.sample_table_data(table, max_rows)
        lines = [
            f"**Table Data ({sample['sampleSize']} of {sample['totalRows']} rows)**",
            "",
            f"**Columns ({len(sample['columns'])}):**",
        ]
        lines += [f"- {c['name']} ({c['type']})" for c in sample["columns"]]
        lines.append("")

        if sample["rows"]:
            headers = [c["name"] for c in sample["columns"]]
            lines.append("**Sample Data:**")
            lines.append(f"| {' | '.join(headers)} |")
            lines.append(f"|{'|'.join('---' for _ in headers)}|")
            for row in sample["rows"][:5]:
                lines.append(f"| {' | '.join(_truncate(format_value(v)) for v in row)} |")
            if len(sample["rows"]) > 5:
                lines.append(f"... and {len(sample['rows']) - 5} more rows")

        if sample["statistics"]:
            lines += ["", "**Column Statistics:**"]
            for stat in sample["statistics"]:
                line = f"- **{stat['columnName']}**: {stat['count']} values, {stat['nullCount']} nulls, {stat['uniqueCount']} unique"
                if "mean" in stat:
                    line += f", avg: {stat['mean']:.2f}, range: {stat['min']} - {stat['max']}"
                lines.append(line)
        return "\n".join(lines)

    def export_item_to_csv(self, item: dict) -> str:
        """CSV text for a dashboard item; accepts engine items and persisted rows."""
        item_type = item.get("type")
        data = item.get("data") if isinstance(item.get("data"), dict) else item

        if item_type == "table":
            columns = [c["name"] for c in data.get("columns") or []]
            return _write_csv(columns, ([row.get(c) for c in columns] for row in data.get("rows") or []))

        if item_type == "statistics":
            entries = {**(data.get("metrics") or {}), **(data.get("details") or {})}
            return _write_csv(["Metric", "Value"], ([k, format_value(v)] for k, v in entries.items()))

        if item_type == "chart":
            points = _chart_points(item, data)
            if not points:
                return "No data available for export"
            headers: list[str] = []
            for point in points:
                headers.extend(k for k in point if k not in headers)
            return _write_csv(headers, ([_csv_cell(p.get(h)) for h in headers] for p in points))

        return "Unsupported format for CSV export"

    async def persist_items(
        self,
        service: "DashboardService",
        tenant_id: UUID,
        chat_id: UUID,
        node_id: str,
        items: list[dict],
    ) -> dict:
        """Save items one by one; failures are collected rather than raised.

        Each save runs in its own savepoint so a rejected row leaves the
        session usable for the items after it.
        """
        errors: list[str] = []
        saved = 0
        for item in items:
            try:
                async with service.db.begin_nested():
                    await service.save_item(tenant_id, chat_id, node_id, item)
                saved += 1
            except Exception as exc:
                logger.warning(
                    "dashboard_item_persist_failed",
                    item_id=item.get("id"),
                    node_id=node_id,
                    error=str(exc),
                )
                errors.append(f"{item.get('id')}: {exc}")
        return {"success": not errors, "saved_count": saved, "errors": errors}


def _chart_points(item: dict, data: dict) -> list[dict]:
    series = data.get("data")
    if series is None and "dataSnapshot" in data:
        try:
            series = json.loads(data["dataSnapshot"])
        except (TypeError, json.JSONDecodeError):
            series = []
    series = series or item.get("data") or []
    if not isinstance(series, list) or not series:
        return []

    first = series[0]
    if isinstance(first, dict) and "id" in first and isinstance(first.get("data"), list):
        return [
            {"series": s.get("id"), **point}
            for s in series
            for point in s.get("data") or []
            if isinstance(point, dict)
        ]
    return [row for row in series if isinstance(row, dict)]


def _csv_cell(value: Any) -> Any:
    return "" if value is None else format_value(value) if isinstance(value, float) else value


def _truncate(text: str, width: int = 20) -> str:
    return text if len(text) <= width else f"{text[: width - 3]}..."


def _write_csv(headers: list[str], rows) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if v is None else v for v in row])
    return buffer.getvalue().rstrip("\n")
