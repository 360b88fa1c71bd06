"""Per-node execution context handed to NodeModel.execute()."""

import asyncio

from app.engine.data_table import DataTableContainer, DataTableSpec
from app.engine.errors import ExecutionCancelled


class ExecutionContext:
    def __init__(
        self,
        node_id: str,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.node_id = node_id
        self._cancel_event = cancel_event
        self.progress: list[tuple[float, str]] = []
        self.dashboard_items: list[dict] = []

    def create_data_table(self, spec: DataTableSpec) -> DataTableContainer:
        return DataTableContainer(spec)

    def check_canceled(self) -> None:
        """Raise ExecutionCancelled once the owning execution is cancelled."""
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise ExecutionCancelled(self.node_id)

    def set_progress(self, fraction: float, message: str = "") -> None:
        self.progress.append((min(max(fraction, 0.0), 1.0), message))

    def add_dashboard_item(self, item: dict) -> None:
        self.dashboard_items.append(item)
