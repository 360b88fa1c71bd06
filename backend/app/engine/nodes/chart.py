"""Chart sink node: shapes its input table into chart data for the dashboard."""

from typing import Any

from app.core.config import settings as app_settings
from app.engine import charts
from app.engine.context import ExecutionContext
from app.engine.data_table import DataTable, DataTableSpec
from app.engine.node_model import DashboardOutputConfig, NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings

DEFAULT_TITLE = "Chart Visualization"
BASE_STYLE = {
    "colors": {"scheme": "nivo"},
    "margin": {"top": 0, "right": 0, "bottom": 0, "left": 0},
    "enableLabels": True,
}


def _mapping_filled(mapping: dict) -> bool:
    return bool(charts.mapped_columns(mapping))


@register_node("chart", "Chart", "Visualization", "Render input data as a chart")
class ChartNodeModel(NodeModel):
    input_ports = 1
    output_ports = 0

    def __init__(self) -> None:
        super().__init__()
        self.chart_type = "scatter"
        self.title = DEFAULT_TITLE
        self.description = ""
        self.data_mapping: dict[str, Any] = {}
        self.chart_config: dict[str, Any] = {}
        self.limit_rows = 1000
        self._configure_output()

    def _configure_output(self) -> None:
        self.configure_dashboard_output(
            [
                DashboardOutputConfig(
                    port_index=0,
                    output_type="chart",
                    title=self.title or f"Chart Node ({self.chart_type})",
                    description=self.description or None,
                )
            ]
        )

    def load_settings(self, settings: NodeSettings) -> None:
        self.chart_type = settings.get_string("chartType", "scatter")
        self.title = settings.get_string("title", DEFAULT_TITLE)
        self.description = settings.get_string("description", "")
        mapping = settings.get_json("dataMapping", {})
        self.data_mapping = mapping if isinstance(mapping, dict) else {}
        config = settings.get_json("chartConfig", {})
        self.chart_config = config if isinstance(config, dict) else {}
        self.limit_rows = settings.get_int("processingOptions.limitRows", 1000)
        self._configure_output()

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("chartType", self.chart_type)
        settings.set("title", self.title)
        settings.set("description", self.description)
        settings.set("dataMapping", dict(self.data_mapping))
        settings.set("chartConfig", dict(self.chart_config))
        settings.set("processingOptions.limitRows", self.limit_rows)

    def validate_settings(self, settings: NodeSettings) -> None:
        chart_type = settings.get_string("chartType", "scatter")
        if chart_type not in charts.CHART_TYPES:
            raise ValueError(f"Unsupported chart type: {chart_type}")

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        return []

    def build_config(self) -> dict[str, Any]:
        return {
            **BASE_STYLE,
            **self.chart_config,
            "chartType": self.chart_type,
            "title": self.title,
            "description": self.description,
            "dataMapping": self.data_mapping,
        }

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[Any]:
        table = inputs[0] if inputs else None
        if table is None or not table.spec.columns:
            return []

        if not _mapping_filled(self.data_mapping):
            self.data_mapping = charts.auto_mapping(self.chart_type, table.spec.column_names)
            if not _mapping_filled(self.data_mapping):
                return []

        missing = [c for c in charts.mapped_columns(self.data_mapping) if c not in table.spec.column_names]
        if missing:
            raise ValueError(f"Mapped columns not found in input data: {', '.join(missing)}")

        limit = min(max(1, self.limit_rows), app_settings.engine.chart_row_limit)
        if table.size > limit:
            table = DataTable(table.spec, table.rows[:limit])

        ctx.set_progress(0.5, "Processing chart data...")
        config = self.build_config()
        try:
            data = charts.process_chart_data(self.chart_type, table, self.data_mapping, config)
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Failed to process chart data: {exc}") from exc

        ctx.set_progress(1.0, "Chart ready")
        return [
            {
                "chartType": self.chart_type,
                "title": self.title,
                "description": self.description,
                "dataMapping": self.data_mapping,
                "config": config,
                "data": data,
                "dataRows": inputs[0].size,
                "dataColumns": len(table.spec.columns),
            }
        ]
