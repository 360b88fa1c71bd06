"""Multi-column sorter node."""

from functools import cmp_to_key
from typing import Any

from app.engine.context import ExecutionContext
from app.engine.data_table import DataRow, DataTable, DataTableSpec
from app.engine.node_model import NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings

DIRECTIONS = ("ASC", "DESC")


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return "string"


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def compare_values(a: Any, b: Any) -> int:
    """Nulls first; mixed kinds compare as text; strings compare case-insensitively."""
    if a is None:
        return 0 if b is None else -1
    if b is None:
        return 1
    if _kind(a) != _kind(b):
        left, right = _text(a), _text(b)
    elif _kind(a) == "number":
        return (a > b) - (a < b)
    else:
        left, right = _text(a).lower(), _text(b).lower()
    return (left > right) - (left < right)


@register_node("sorter", "Sorter", "Data Manipulation", "Sort rows by one or more columns")
class SorterNodeModel(NodeModel):
    def __init__(self) -> None:
        super().__init__()
        self.sort_columns: list[dict] = []

    def load_settings(self, settings: NodeSettings) -> None:
        columns = settings.get_json("sort_columns", [])
        self.sort_columns = columns if isinstance(columns, list) else []

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("sort_columns", list(self.sort_columns))

    def validate_settings(self, settings: NodeSettings) -> None:
        columns = settings.get_json("sort_columns", [])
        if not columns:
            raise ValueError("At least one sort column must be specified")
        for column in columns:
            if not column.get("columnName") or not column.get("direction"):
                raise ValueError("Each sort column must specify columnName and direction")
            if column["direction"] not in DIRECTIONS:
                raise ValueError(f"Invalid sort direction: {column['direction']}")

    def _sort_keys(self, spec: DataTableSpec) -> list[tuple[int, bool]]:
        keys = []
        for column in self.sort_columns:
            index = spec.find_column_index(column.get("columnName", ""))
            if index < 0:
                raise ValueError(f"Sort column '{column.get('columnName')}' not found in input table")
            keys.append((index, column.get("direction") == "DESC"))
        return keys

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        self._sort_keys(in_specs[0])
        return [in_specs[0]]

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        table = inputs[0]
        keys = self._sort_keys(table.spec)

        def compare_rows(a: DataRow, b: DataRow) -> int:
            for index, descending in keys:
                result = compare_values(a.cells[index].value, b.cells[index].value)
                if result:
                    return -result if descending else result
            return 0

        ctx.set_progress(0.3, "Sorting data...")
        ctx.check_canceled()
        rows = sorted(table.rows, key=cmp_to_key(compare_rows))

        output = ctx.create_data_table(table.spec)
        for row in rows:
            output.add_row(row.key, row.cells)
        ctx.set_progress(1.0, "Sort complete")
        return [output.close()]
