"""Base class for workflow node implementations.

A node model consumes one DataTable per input port and returns one output
per output port. Outputs are usually DataTables; chart and statistics
producers may return plain dicts which only feed the dashboard.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

import structlog

from app.engine.context import ExecutionContext
from app.engine.data_table import DataTable, DataTableSpec
from app.engine.settings import NodeSettings
from app.engine.utils import convert_output_to_dashboard_item

logger = structlog.stdlib.get_logger(__name__)


@dataclass(frozen=True)
class DashboardOutputConfig:
    """Which output port is mirrored to the dashboard, and how."""

    port_index: int
    output_type: str  # table | chart | statistics
    title: str | None = None
    description: str | None = None


class NodeModel(ABC):
    input_ports: ClassVar[int] = 1
    output_ports: ClassVar[int] = 1

    # Set by the registry decorator
    factory_id: ClassVar[str] = ""

    def __init__(self) -> None:
        self._dashboard_outputs: list[DashboardOutputConfig] = []

    @abstractmethod
    async def execute(
        self, inputs: list[DataTable], ctx: ExecutionContext
    ) -> list[Any]:
        """Process the input tables and return one output per output port."""

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        """Output specs derived from input specs; pass-through by default."""
        return list(in_specs[:1]) * self.output_ports if in_specs else []

    def load_settings(self, settings: NodeSettings) -> None:
        pass

    def save_settings(self, settings: NodeSettings) -> None:
        pass

    def validate_settings(self, settings: NodeSettings) -> None:
        """Raise ValueError when the settings cannot drive an execution."""

    def configure_dashboard_output(self, outputs: list[DashboardOutputConfig]) -> None:
        self._dashboard_outputs = list(outputs)

    @property
    def dashboard_outputs(self) -> list[DashboardOutputConfig]:
        return list(self._dashboard_outputs)

    def send_outputs_to_dashboard(
        self, outputs: list[Any], ctx: ExecutionContext, node_label: str
    ) -> list[dict]:
        """Add one dashboard item per configured output port to the context."""
        items = []
        for config in self._dashboard_outputs:
            if config.port_index >= len(outputs) or outputs[config.port_index] is None:
                logger.warning(
                    "dashboard_output_missing",
                    node_id=ctx.node_id,
                    port_index=config.port_index,
                    available=len(outputs),
                )
                continue
            item = convert_output_to_dashboard_item(
                ctx.node_id,
                config.title or node_label,
                config.output_type,
                outputs[config.port_index],
            )
            if item is None:
                logger.warning(
                    "dashboard_output_unconvertible",
                    node_id=ctx.node_id,
                    output_type=config.output_type,
                )
                continue
            item["id"] = f"{ctx.node_id}-port-{config.port_index}"
            if config.description:
                item["description"] = config.description
            ctx.add_dashboard_item(item)
            items.append(item)
        return items
