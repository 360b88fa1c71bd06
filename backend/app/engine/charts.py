"""Chart data shaping for the dashboard renderer.

Each processor turns a DataTable plus a column mapping into the data layout
the frontend chart for that type expects. Processors never raise on bad
data; rows that cannot be plotted are dropped.
"""

from collections.abc import Callable
from typing import Any

from app.engine.data_table import DataTable
from app.engine.utils import to_number

CHART_TYPES = ("bar", "line", "pie", "scatter", "heatmap")


def chart_number(value: Any) -> float:
    """Numeric value for plotting; anything unparsable plots as 0."""
    number = to_number(value)
    return 0 if number is None else number


def clean_label(value: Any) -> str:
    text = "" if value is None else str(value).strip()
    return text or "Unknown"


def _plain_records(table: DataTable) -> list[dict[str, Any]]:
    names = table.spec.column_names
    return [dict(zip(names, (c.value for c in row.cells))) for row in table]


def _as_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [v for v in value if v]
    return [value] if value else []


def _sort_key(value: Any, scale: str | None) -> Any:
    if scale == "linear":
        return value if isinstance(value, (int, float)) else 0
    return str(value).lower()


def process_bar(table: DataTable, mapping: dict, config: dict) -> list[dict]:
    headers = table.spec.column_names
    index_by = mapping.get("indexBy", "")
    value_columns = [c for c in _as_list(mapping.get("valueColumns")) if c in headers]
    if index_by not in headers:
        return []

    data = []
    for row in _plain_records(table):
        item: dict[str, Any] = {index_by: clean_label(row[index_by])}
        for column in value_columns:
            item[column] = chart_number(row[column])
        if any(item[c] > 0 for c in value_columns):
            data.append(item)

    sorting = config.get("sorting") or {}
    if sorting.get("enabled", True):
        reverse = sorting.get("direction", "asc") == "desc"
        if sorting.get("sortBy", "index") == "value":
            target = sorting.get("valueColumn")
            columns = [target] if target in value_columns else value_columns
            data.sort(key=lambda item: sum(item.get(c, 0) for c in columns), reverse=reverse)
        else:
            data.sort(key=lambda item: str(item[index_by]).lower(), reverse=reverse)
    return data


def process_line(table: DataTable, mapping: dict, config: dict) -> list[dict]:
    headers = table.spec.column_names
    x_column = mapping.get("xColumn", "")
    y_columns = [c for c in _as_list(mapping.get("yColumns")) if c in headers]
    id_column = mapping.get("idColumn")
    if x_column not in headers:
        return []

    scale = (config.get("xScale") or {}).get("type")
    sorting = config.get("sorting") or {}
    reverse = sorting.get("direction", "asc") == "desc"

    def x_value(value: Any) -> Any:
        return chart_number(value) if scale == "linear" else clean_label(value)

    def ordered(points: list[dict]) -> list[dict]:
        if not sorting.get("enabled", True):
            return points
        return sorted(points, key=lambda p: _sort_key(p["x"], scale), reverse=reverse)

    if id_column and id_column in headers:
        if not y_columns:
            return []
        series: dict[str, list[dict]] = {}
        for row in _plain_records(table):
            y = to_number(row[y_columns[0]])
            if y is not None:
                series.setdefault(clean_label(row[id_column]), []).append(
                    {"x": x_value(row[x_column]), "y": y}
                )
        return [{"id": key, "data": ordered(points)} for key, points in series.items() if points]

    # One series per y column, points shared by x value
    by_x: dict[Any, dict[str, float]] = {}
    for row in _plain_records(table):
        values = by_x.setdefault(x_value(row[x_column]), {})
        for column in y_columns:
            y = to_number(row[column])
            if y is not None:
                values[column] = y

    points = ordered([{"x": x, "y": values} for x, values in by_x.items()])
    result = []
    for column in y_columns:
        data = [{"x": p["x"], "y": p["y"][column]} for p in points if column in p["y"]]
        if data:
            result.append({"id": clean_label(column), "data": data})
    return result


def process_pie(table: DataTable, mapping: dict, config: dict) -> list[dict]:
    headers = table.spec.column_names
    id_column = mapping.get("idColumn", "")
    value_column = mapping.get("valueColumn", "")
    if id_column not in headers or value_column not in headers:
        return []

    data = []
    for row in _plain_records(table):
        label = clean_label(row[id_column])
        value = chart_number(row[value_column])
        if value > 0:
            data.append({"id": label, "label": label, "value": value})
    if config.get("sortByValue"):
        data.sort(key=lambda item: item["value"], reverse=True)
    return data


def process_scatter(table: DataTable, mapping: dict, config: dict) -> list[dict]:
    headers = table.spec.column_names
    x_column = mapping.get("xColumn", "")
    y_column = mapping.get("yColumn", "")
    series_column = mapping.get("seriesColumn")
    size_column = mapping.get("sizeColumn")
    if x_column not in headers or y_column not in headers:
        return []

    grouped = bool(series_column) and series_column in headers
    series: dict[str, list[dict]] = {}
    for row in _plain_records(table):
        point: dict[str, Any] = {"x": chart_number(row[x_column]), "y": chart_number(row[y_column])}
        if size_column and size_column in headers:
            size = chart_number(row[size_column])
            if size > 0:
                point["size"] = size
        key = clean_label(row[series_column]) if grouped else "data"
        series.setdefault(key, []).append(point)
    return [{"id": key, "data": points} for key, points in series.items() if points]


def process_heatmap(table: DataTable, mapping: dict, config: dict) -> list[dict]:
    headers = table.spec.column_names
    x_column = mapping.get("xColumn", "")
    y_column = mapping.get("yColumn", "")
    value_column = mapping.get("valueColumn", "")
    if any(c not in headers for c in (x_column, y_column, value_column)):
        return []
    return [
        {
            "x": clean_label(row[x_column]),
            "y": clean_label(row[y_column]),
            "v": chart_number(row[value_column]),
        }
        for row in _plain_records(table)
    ]


PROCESSORS: dict[str, Callable[[DataTable, dict, dict], list[dict]]] = {
    "bar": process_bar,
    "line": process_line,
    "pie": process_pie,
    "scatter": process_scatter,
    "heatmap": process_heatmap,
}


def process_chart_data(chart_type: str, table: DataTable, mapping: dict, config: dict | None = None) -> list[dict]:
    processor = PROCESSORS.get(chart_type)
    if processor is None:
        return []
    return processor(table, mapping, config or {})


def auto_mapping(chart_type: str, column_names: list[str]) -> dict:
    """Default column mapping built from the leading columns of a table."""
    if chart_type == "heatmap":
        if len(column_names) < 3:
            return {}
        return {"xColumn": column_names[0], "yColumn": column_names[1], "valueColumn": column_names[2]}
    if len(column_names) < 2:
        return {}
    first, second = column_names[0], column_names[1]
    if chart_type == "bar":
        return {"indexBy": first, "valueColumns": [second]}
    if chart_type == "line":
        return {"xColumn": first, "yColumns": [second]}
    if chart_type == "pie":
        return {"idColumn": first, "valueColumn": second}
    mapping = {"xColumn": first, "yColumn": second}
    if chart_type == "scatter" and len(column_names) > 2:
        mapping["seriesColumn"] = column_names[2]
    return mapping


def mapped_columns(mapping: dict) -> list[str]:
    columns: list[str] = []
    for value in mapping.values():
        columns.extend(_as_list(value))
    return columns
