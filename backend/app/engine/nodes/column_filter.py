"""Column filter node: keeps the selected columns, or drops them in exclude mode."""

from app.engine.context import ExecutionContext
from app.engine.data_table import DataTable, DataTableSpec
from app.engine.node_model import NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings

KEEP = "keep"
EXCLUDE = "exclude"


@register_node("column-filter", "Column Filter", "Data Manipulation", "Keep or drop selected columns")
class ColumnFilterNodeModel(NodeModel):
    def __init__(self) -> None:
        super().__init__()
        self.selected_columns: list[str] = []
        self.filter_mode = KEEP

    def load_settings(self, settings: NodeSettings) -> None:
        self.selected_columns = [
            name
            for i in range(settings.get_int("selectedColumnCount", 0))
            if (name := settings.get_string(f"selectedColumn_{i}", ""))
        ]
        self.filter_mode = settings.get_string("filterMode", KEEP)

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("selectedColumnCount", len(self.selected_columns))
        for i, name in enumerate(self.selected_columns):
            settings.set(f"selectedColumn_{i}", name)
        settings.set("filterMode", self.filter_mode)

    def validate_settings(self, settings: NodeSettings) -> None:
        if settings.get_int("selectedColumnCount", 0) == 0:
            raise ValueError("Please select at least one column")

    def _kept_indices(self, spec: DataTableSpec) -> list[int]:
        if self.filter_mode == KEEP:
            indices = (spec.find_column_index(name) for name in self.selected_columns)
            return [i for i in indices if i != -1]
        excluded = {spec.find_column_index(name) for name in self.selected_columns}
        return [i for i in range(len(spec.columns)) if i not in excluded]

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        if not in_specs:
            return []
        kept = self._kept_indices(in_specs[0])
        if not kept:
            raise ValueError("Column filter would result in no columns. Please adjust your selection.")
        return [DataTableSpec(tuple(in_specs[0].columns[i] for i in kept))]

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        if not inputs:
            raise ValueError("No input table provided")
        table = inputs[0]
        kept = self._kept_indices(table.spec)
        if not kept:
            raise ValueError("No columns would remain after filtering")

        output = ctx.create_data_table(DataTableSpec(tuple(table.spec.columns[i] for i in kept)))
        for processed, row in enumerate(table, start=1):
            ctx.check_canceled()
            output.add_row(row.key, [row.cells[i] for i in kept])
            if processed % 100 == 0:
                ctx.set_progress(processed / table.size, f"Processed {processed} of {table.size} rows")

        ctx.set_progress(1, f"Filtered to {len(kept)} columns")
        return [output.close()]
