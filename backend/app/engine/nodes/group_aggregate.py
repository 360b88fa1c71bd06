"""Group-by node with per-column aggregations."""

import math
from typing import Any

from app.engine.context import ExecutionContext
from app.engine.data_table import Cell, ColumnSpec, DataTable, DataTableSpec
from app.engine.node_model import DashboardOutputConfig, NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings
from app.engine.utils import to_number

METHODS = ("SUM", "AVERAGE", "MIN", "MAX", "COUNT", "FIRST", "LAST")
NUMERIC_METHODS = ("SUM", "AVERAGE", "MIN", "MAX")


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _numbers(values: list[Any]) -> list[float]:
    result = []
    for value in values:
        number = 0 if value is None or value == "" else to_number(value)
        if number is not None:
            result.append(number)
    return result


def compute_aggregation(values: list[Any], method: str) -> Any:
    """SUM and AVERAGE round each value to an integer before combining."""
    if not values:
        return None
    if method == "SUM":
        return sum(_round_half_up(n) for n in _numbers(values))
    if method == "AVERAGE":
        rounded = [_round_half_up(n) for n in _numbers(values)]
        return sum(rounded) / len(rounded) if rounded else None
    if method == "MIN":
        numbers = _numbers(values)
        return min(numbers) if numbers else None
    if method == "MAX":
        numbers = _numbers(values)
        return max(numbers) if numbers else None
    if method == "COUNT":
        return len(values)
    if method == "FIRST":
        return values[0]
    if method == "LAST":
        return values[-1]
    return None


def aggregated_type(method: str, original_type: str) -> str:
    if method in ("FIRST", "LAST"):
        return original_type
    if method in (*NUMERIC_METHODS, "COUNT"):
        return "number"
    return "string"


@register_node(
    "group-and-aggregate",
    "Group and Aggregate",
    "Data Manipulation",
    "Group rows and aggregate columns",
)
class GroupAndAggregateNodeModel(NodeModel):
    def __init__(self) -> None:
        super().__init__()
        self.group_columns: list[str] = []
        self.aggregations: list[dict] = []
        self.configure_dashboard_output(
            [
                DashboardOutputConfig(
                    port_index=0,
                    output_type="table",
                    title="Grouped and Aggregated Data",
                    description="Data grouped by specified columns with aggregations applied",
                )
            ]
        )

    def load_settings(self, settings: NodeSettings) -> None:
        groups = settings.get_json("group_columns", [])
        self.group_columns = [str(g) for g in groups] if isinstance(groups, list) else []
        aggregations = settings.get_json("aggregations", [])
        self.aggregations = aggregations if isinstance(aggregations, list) else []

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("group_columns", list(self.group_columns))
        settings.set("aggregations", list(self.aggregations))

    def validate_settings(self, settings: NodeSettings) -> None:
        if not settings.get_json("group_columns", []):
            raise ValueError("At least one group column must be specified")
        aggregations = settings.get_json("aggregations", [])
        if not aggregations:
            raise ValueError("At least one aggregation must be specified")
        for agg in aggregations:
            if not agg.get("columnName") or not agg.get("newColumnName"):
                raise ValueError("Each aggregation must specify columnName and newColumnName")
            if agg.get("method") not in METHODS:
                raise ValueError(f"Invalid aggregation method: {agg.get('method')}")

    def _output_spec(self, spec: DataTableSpec) -> DataTableSpec:
        columns = []
        for name in self.group_columns:
            index = spec.find_column_index(name)
            if index < 0:
                raise ValueError(f"Group column '{name}' not found in input table")
            columns.append(spec.columns[index])
        for agg in self.aggregations:
            index = spec.find_column_index(agg["columnName"])
            if index < 0:
                raise ValueError(f"Aggregation column '{agg['columnName']}' not found in input table")
            original = spec.columns[index].type
            if agg["method"] in NUMERIC_METHODS and original != "number":
                raise ValueError(
                    f"Column '{agg['columnName']}' must be numeric for {agg['method']} aggregation"
                )
            columns.append(ColumnSpec(agg["newColumnName"], aggregated_type(agg["method"], original)))
        return DataTableSpec(tuple(columns))

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        return [self._output_spec(in_specs[0])]

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        table = inputs[0]
        spec = self._output_spec(table.spec)
        group_indices = [table.spec.find_column_index(c) for c in self.group_columns]
        agg_indices = [table.spec.find_column_index(a["columnName"]) for a in self.aggregations]

        # Insertion-ordered: groups come out in first-seen order
        groups: dict[tuple, tuple[list[Cell], list[list[Any]]]] = {}
        for processed, row in enumerate(table):
            if processed % 100 == 0:
                ctx.check_canceled()
                ctx.set_progress(processed / max(table.size, 1) * 0.5, f"Grouping row {processed} of {table.size}")
            key = tuple(str(row.cells[i].value) for i in group_indices)
            if key not in groups:
                groups[key] = ([row.cells[i] for i in group_indices], [[] for _ in agg_indices])
            for bucket, index in zip(groups[key][1], agg_indices):
                bucket.append(row.cells[index].value)

        output = ctx.create_data_table(spec)
        for count, (group_cells, buckets) in enumerate(groups.values(), start=1):
            cells = list(group_cells)
            for agg, values, column in zip(self.aggregations, buckets, spec.columns[len(group_cells):]):
                cells.append(Cell(column.type, compute_aggregation(values, agg["method"])))
            output.add_row(f"group_{count}", cells)

        ctx.set_progress(1.0, f"Aggregated {len(groups)} groups")
        return [output.close()]
