"""Missing value handling: impute per column or drop incomplete rows."""

from collections import Counter
from typing import Any

from app.engine.context import ExecutionContext
from app.engine.data_table import Cell, DataRow, DataTable, DataTableSpec
from app.engine.node_model import NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings
from app.engine.utils import is_missing, to_number

MEAN = "MEAN"
MEDIAN = "MEDIAN"
MOST_FREQUENT = "MOST_FREQUENT"
REMOVE_ROWS = "REMOVE_ROWS"
METHODS = (MEAN, MEDIAN, MOST_FREQUENT, REMOVE_ROWS)


def most_frequent(values: list[Any]) -> Any:
    # Ties go to the value seen first
    return Counter(values).most_common(1)[0][0]


def replacement_for(values: list[Any], method: str, column_type: str) -> Any:
    """Replacement for missing cells, computed from the column's present values."""
    present = [v for v in values if not is_missing(v)]
    if not present:
        return 0 if column_type == "number" else ""
    if method in (MEAN, MEDIAN) and column_type == "number":
        numbers = sorted(n for n in (to_number(v) for v in present) if n is not None)
        if not numbers:
            return 0
        if method == MEAN:
            return sum(numbers) / len(numbers)
        mid = len(numbers) // 2
        return numbers[mid] if len(numbers) % 2 else (numbers[mid - 1] + numbers[mid]) / 2
    return most_frequent(present)


@register_node(
    "missing-values",
    "Missing Values",
    "Data Manipulation",
    "Replace or remove missing values",
)
class MissingValuesNodeModel(NodeModel):
    def __init__(self) -> None:
        super().__init__()
        self.column_configs: list[dict] = []
        self.default_method = MOST_FREQUENT

    def load_settings(self, settings: NodeSettings) -> None:
        configs = settings.get_json("column_configs", [])
        self.column_configs = configs if isinstance(configs, list) else []
        self.default_method = settings.get_string("default_method", MOST_FREQUENT)

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("column_configs", list(self.column_configs))
        settings.set("default_method", self.default_method)

    def validate_settings(self, settings: NodeSettings) -> None:
        method = settings.get_string("default_method", MOST_FREQUENT)
        if method not in METHODS:
            raise ValueError(f"Invalid missing value method: {method}")

    def method_for(self, column: str) -> str:
        for config in self.column_configs:
            if config.get("columnName") == column and config.get("method"):
                return config["method"]
        return self.default_method

    def _keep(self, row: DataRow, removal: list[int]) -> bool:
        return not any(is_missing(row.cells[i].value) for i in removal)

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        return list(in_specs)

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        if not inputs:
            raise ValueError("No input data provided. Please connect an input node.")
        table = inputs[0]
        spec = table.spec

        ctx.set_progress(0.3, "Computing replacement values...")
        methods = [self.method_for(c.name) for c in spec.columns]
        removal = [i for i, method in enumerate(methods) if method == REMOVE_ROWS]
        replacements: dict[int, Any] = {
            i: replacement_for(table.column_values(i), method, spec.columns[i].type)
            for i, method in enumerate(methods)
            if method != REMOVE_ROWS
        }

        ctx.set_progress(0.5, "Processing data...")
        output = ctx.create_data_table(spec)
        for processed, row in enumerate(table):
            if processed % 100 == 0:
                ctx.check_canceled()
            if self._keep(row, removal):
                cells = [
                    Cell(column.type, replacements[i])
                    if is_missing(row.cells[i].value) and i in replacements
                    else Cell(column.type, row.cells[i].value)
                    for i, column in enumerate(spec.columns)
                ]
                output.add_row(f"processed-{processed}", cells)

        ctx.set_progress(1.0, "Missing value handling completed")
        return [output.close()]
