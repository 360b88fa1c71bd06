"""Row filter node: keeps rows matching AND/OR-combined column conditions."""

from dataclasses import dataclass
from typing import Any

from app.engine.context import ExecutionContext
from app.engine.data_table import DataRow, DataTable, DataTableSpec
from app.engine.node_model import NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings
from app.engine.utils import to_number

OPERATORS = (
    "=",
    "!=",
    ">",
    ">=",
    "<",
    "<=",
    "contains",
    "not contains",
    "starts with",
    "ends with",
    "is empty",
    "is not empty",
)


@dataclass(frozen=True)
class FilterCondition:
    column: str
    operator: str = "="
    value: str = ""


def _as_number(value: Any) -> float | None:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return int(value)
    return to_number(value)


def _strict_equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    return a == b


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).lower()


def parse_condition_value(value: str, cell_type: str) -> Any:
    if cell_type == "number":
        number = to_number(value)
        return value if number is None else number
    if cell_type == "boolean":
        return value.lower() == "true"
    return value


def evaluate_condition(row: DataRow, spec: DataTableSpec, condition: FilterCondition) -> bool:
    index = spec.find_column_index(condition.column)
    if index == -1:
        return False

    cell = row.cells[index]
    value = cell.value
    op = condition.operator

    if op == "is empty":
        return value is None or value == ""
    if op == "is not empty":
        return value is not None and value != ""

    target = parse_condition_value(condition.value, cell.type)
    if op == "=":
        return _strict_equal(value, target)
    if op == "!=":
        return not _strict_equal(value, target)

    if op in (">", ">=", "<", "<="):
        left, right = _as_number(value), _as_number(target)
        if left is None or right is None:
            return False
        return {
            ">": left > right,
            ">=": left >= right,
            "<": left < right,
            "<=": left <= right,
        }[op]

    text, needle = _as_text(value), _as_text(target)
    if op == "contains":
        return needle in text
    if op == "not contains":
        return needle not in text
    if op == "starts with":
        return text.startswith(needle)
    if op == "ends with":
        return text.endswith(needle)
    return False


@register_node("row-filter", "Row Filter", "Data Manipulation", "Keep rows matching conditions")
class RowFilterNodeModel(NodeModel):
    def __init__(self) -> None:
        super().__init__()
        self.conditions: list[FilterCondition] = []
        self.logical_operator = "AND"

    def load_settings(self, settings: NodeSettings) -> None:
        self.conditions = []
        for i in range(settings.get_int("conditionCount", 0)):
            condition = FilterCondition(
                column=settings.get_string(f"condition_{i}_column", ""),
                operator=settings.get_string(f"condition_{i}_operator", "="),
                value=settings.get_string(f"condition_{i}_value", ""),
            )
            if condition.column:
                self.conditions.append(condition)
        self.logical_operator = settings.get_string("logicalOperator", "AND").upper()

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("conditionCount", len(self.conditions))
        for i, condition in enumerate(self.conditions):
            settings.set(f"condition_{i}_column", condition.column)
            settings.set(f"condition_{i}_operator", condition.operator)
            settings.set(f"condition_{i}_value", condition.value)
        settings.set("logicalOperator", self.logical_operator)

    def validate_settings(self, settings: NodeSettings) -> None:
        if settings.get_int("conditionCount", 0) == 0:
            raise ValueError("At least one filter condition is required")
        for i in range(settings.get_int("conditionCount", 0)):
            operator = settings.get_string(f"condition_{i}_operator", "=")
            if operator not in OPERATORS:
                raise ValueError(f"Unsupported filter operator: {operator}")

    def matches(self, row: DataRow, spec: DataTableSpec) -> bool:
        if not self.conditions:
            return True
        results = (evaluate_condition(row, spec, c) for c in self.conditions)
        return all(results) if self.logical_operator == "AND" else any(results)

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        if not inputs:
            raise ValueError("No input table provided")
        table = inputs[0]
        output = ctx.create_data_table(table.spec)

        for processed, row in enumerate(table, start=1):
            ctx.check_canceled()
            if self.matches(row, table.spec):
                output.add_row(row.key, row.cells)
            if processed % 100 == 0:
                ctx.set_progress(
                    processed / table.size,
                    f"Filtered {output.size} of {processed} rows",
                )

        ctx.set_progress(1, f"Filtered {output.size} of {table.size} rows")
        return [output.close()]
