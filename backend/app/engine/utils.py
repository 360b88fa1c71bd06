"""Value coercion, column statistics and dashboard item conversion."""

import json
import math
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from app.engine.data_table import DataTable


def utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


def is_missing(value: Any) -> bool:
    """None, empty string and the literal "null" (any case) count as missing."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str):
        return value == "" or value.lower() == "null"
    return False


def to_number(value: Any) -> float | None:
    """Best-effort numeric coercion; booleans and unparsable text give None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        integral = number.is_integer() and not any(ch in text for ch in ".eE")
        return int(number) if integral else number
    return None


def format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else f"{value:.2f}"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def calculate_column_statistics(table: DataTable) -> list[dict[str, Any]]:
    """Per-column count, nulls and distinct values, plus numeric or mode stats."""
    statistics = []
    for index, column in enumerate(table.spec.columns):
        values = table.column_values(index)
        present = [v for v in values if v is not None and v != ""]
        stat: dict[str, Any] = {
            "columnName": column.name,
            "type": column.type,
            "count": len(values),
            "nullCount": len(values) - len(present),
            "uniqueCount": len(set(_hashable(v) for v in present)),
        }
        if column.type == "number" and present:
            numbers = sorted(n for n in (to_number(v) for v in present) if n is not None)
            if numbers:
                mid = len(numbers) // 2
                stat["min"] = numbers[0]
                stat["max"] = numbers[-1]
                stat["mean"] = sum(numbers) / len(numbers)
                stat["median"] = (
                    (numbers[mid - 1] + numbers[mid]) / 2
                    if len(numbers) % 2 == 0
                    else numbers[mid]
                )
        if column.type == "string" and present:
            # Counter.most_common keeps first-seen order on ties
            stat["mode"] = Counter(_hashable(v) for v in present).most_common(1)[0][0]
        statistics.append(stat)
    return statistics


def _hashable(value: Any) -> Any:
    return json.dumps(value, sort_keys=True) if isinstance(value, (dict, list)) else value


def determine_output_type(output: Any) -> str:
    if output is None or (isinstance(output, list) and not output):
        return "text"
    if isinstance(output, DataTable):
        return "table"
    if isinstance(output, list) and isinstance(output[0], DataTable):
        return "table"
    if isinstance(output, dict):
        if output.get("summary") or output.get("metrics") or output.get("statistics"):
            return "statistics"
        if output.get("chartType") or output.get("chart"):
            return "chart"
        if output.get("error"):
            return "error"
    if isinstance(output, Exception):
        return "error"
    return "text"


def convert_output_to_dashboard_item(
    node_id: str,
    node_label: str,
    output_type: str,
    output: Any,
) -> dict | None:
    """Turn one node output into a dashboard item dict, or None if it cannot be shown."""
    now = datetime.now(UTC)
    item: dict[str, Any] = {
        "id": f"{node_id}-{int(now.timestamp() * 1000)}",
        "nodeId": node_id,
        "nodeName": node_label,
        "title": f"{node_label} Output",
        "description": None,
        "metadata": {"processedAt": now.isoformat(), "nodeLabel": node_label},
    }

    if output_type == "chart":
        if not isinstance(output, dict) or not output.get("chartType"):
            return None
        item.update(
            type="chart",
            chartType=output["chartType"],
            config=output.get("config") or {},
            data=output.get("data") or [],
        )
        item["metadata"].update(
            totalRows=output.get("dataRows", 0),
            totalColumns=output.get("dataColumns", 0),
        )
        return item

    if output_type == "table":
        table = output[0] if isinstance(output, list) and output else output
        if not isinstance(table, DataTable):
            return None
        item.update(
            type="table",
            columns=table.spec.to_list(),
            rows=table.to_records(),
            statistics=calculate_column_statistics(table),
        )
        item["metadata"].update(totalRows=table.size, totalColumns=len(table.spec.columns))
        return item

    if output_type == "statistics":
        if not isinstance(output, dict):
            return None
        metrics = output.get("metrics") or {}
        details = output.get("details") or {}
        item.update(
            type="statistics",
            summary=output.get("summary") or "Statistics",
            metrics=metrics,
            details=details,
        )
        item["metadata"]["totalRows"] = len(metrics) + len(details)
        return item

    return None
