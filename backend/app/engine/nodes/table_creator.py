"""Manual table entry node: headers plus a cell grid typed column by column."""

from typing import Any

from app.engine.context import ExecutionContext
from app.engine.data_table import Cell, ColumnSpec, DataTable, DataTableSpec
from app.engine.node_model import NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings
from app.engine.utils import to_number


def infer_column_type(values: list[Any]) -> str:
    present = [v for v in values if v is not None and v != ""]
    if not present:
        return "string"
    if all(not isinstance(v, bool) and to_number(v) is not None for v in present):
        return "number"
    if all(isinstance(v, bool) or v in ("true", "false") for v in present):
        return "boolean"
    return "string"


def coerce_value(value: Any, column_type: str) -> Any:
    if value is None or value == "":
        return ""
    if column_type == "number":
        number = to_number(value)
        return value if number is None else number
    if column_type == "boolean":
        return str(value).lower() == "true"
    return str(value)


@register_node("table-creator", "Table Creator", "Data Sources", "Type a small table by hand")
class TableCreatorNodeModel(NodeModel):
    input_ports = 0
    output_ports = 1

    def __init__(self) -> None:
        super().__init__()
        self.headers: list[str] = []
        self.cells: list[list[Any]] = []
        self.grid_size = {"rows": 0, "cols": 0}

    def load_settings(self, settings: NodeSettings) -> None:
        headers = settings.get_json("headers", [])
        self.headers = [str(h) for h in headers] if isinstance(headers, list) else []
        cells = settings.get_json("cells", [])
        self.cells = cells if isinstance(cells, list) else []
        grid = settings.get_json("gridSize", {})
        if isinstance(grid, dict):
            self.grid_size = {"rows": int(grid.get("rows", 0)), "cols": int(grid.get("cols", 0))}
        else:
            self.grid_size = {"rows": 0, "cols": 0}

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("headers", list(self.headers))
        settings.set("cells", [list(row) for row in self.cells])
        settings.set("gridSize", dict(self.grid_size))

    def validate_settings(self, settings: NodeSettings) -> None:
        headers = settings.get_json("headers", [])
        if not isinstance(headers, list) or not headers:
            raise ValueError("At least one column header must be defined")
        names = [str(h).strip() for h in headers if str(h).strip()]
        if len(set(names)) != len(names):
            raise ValueError("Column names must be unique and not empty")

    def _grid(self) -> list[list[Any]]:
        rows, cols = self.grid_size["rows"], self.grid_size["cols"]
        grid = []
        for i in range(rows):
            source = self.cells[i] if i < len(self.cells) and isinstance(self.cells[i], list) else []
            grid.append([source[j] if j < len(source) and source[j] is not None else "" for j in range(cols)])
        return grid

    def _column_names(self) -> list[str]:
        if self.headers:
            return self.headers[: self.grid_size["cols"]] if self.grid_size["cols"] else self.headers
        return [f"Column {i + 1}" for i in range(self.grid_size["cols"])]

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        return [DataTableSpec.of(*[(name, "string") for name in self.headers])]

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        grid = self._grid()
        names = self._column_names()
        if not grid:
            return [ctx.create_data_table(DataTableSpec.of(*[(n, "string") for n in names])).close()]

        types = [
            infer_column_type([row[i] if i < len(row) else "" for row in grid])
            for i in range(len(names))
        ]
        spec = DataTableSpec(tuple(ColumnSpec(n, t) for n, t in zip(names, types)))
        output = ctx.create_data_table(spec)
        for row_index, row in enumerate(grid):
            output.add_row(
                f"row-{row_index}",
                [
                    Cell(t, coerce_value(row[i] if i < len(row) else "", t))
                    for i, t in enumerate(types)
                ],
            )
        return [output.close()]
