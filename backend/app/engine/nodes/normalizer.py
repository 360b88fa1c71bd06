"""Normalizer node: min-max, z-score or decimal scaling over numeric columns."""

import math
from dataclasses import dataclass
from typing import Any

from app.engine.context import ExecutionContext
from app.engine.data_table import Cell, DataTable, DataTableSpec
from app.engine.node_model import NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings
from app.engine.utils import to_number

MIN_MAX = "MIN_MAX"
Z_SCORE = "Z_SCORE"
DECIMAL_SCALING = "DECIMAL_SCALING"
METHODS = (MIN_MAX, Z_SCORE, DECIMAL_SCALING)


@dataclass(frozen=True)
class ColumnStats:
    min: float = 0
    max: float = 0
    mean: float = 0
    std_dev: float = 0
    max_abs: float = 0

    @classmethod
    def from_values(cls, values: list[Any]) -> "ColumnStats":
        numbers = [n for n in (to_number(v) for v in values) if n is not None]
        if not numbers:
            return cls()
        mean = sum(numbers) / len(numbers)
        variance = sum((n - mean) ** 2 for n in numbers) / len(numbers)
        return cls(
            min=min(numbers),
            max=max(numbers),
            mean=mean,
            std_dev=math.sqrt(variance),
            max_abs=max(abs(n) for n in numbers),
        )


def decimal_divisor(max_abs: float) -> int:
    """Smallest power of ten that brings max_abs to at most 1."""
    divisor = 1
    while max_abs / divisor > 1:
        divisor *= 10
    return divisor


@register_node("normalizer", "Normalizer", "Data Manipulation", "Normalize numeric columns")
class NormalizerNodeModel(NodeModel):
    def __init__(self) -> None:
        super().__init__()
        self.number_columns: list[str] = []
        self.method = MIN_MAX
        self.min_value: float = 0
        self.max_value: float = 1

    def load_settings(self, settings: NodeSettings) -> None:
        columns = settings.get_json("number_columns", [])
        self.number_columns = [str(c) for c in columns] if isinstance(columns, list) else []
        self.method = settings.get_string("normalization_method", MIN_MAX)
        self.min_value = settings.get_number("min_value", 0)
        self.max_value = settings.get_number("max_value", 1)

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("number_columns", list(self.number_columns))
        settings.set("normalization_method", self.method)
        settings.set("min_value", self.min_value)
        settings.set("max_value", self.max_value)

    def validate_settings(self, settings: NodeSettings) -> None:
        method = settings.get_string("normalization_method", MIN_MAX)
        if method not in METHODS:
            raise ValueError(f"Invalid normalization method: {method}")
        if method == MIN_MAX and settings.get_number("min_value", 0) >= settings.get_number("max_value", 1):
            raise ValueError(
                "Minimum value must be less than maximum value for min-max normalization."
            )

    def normalize(self, value: Any, stats: ColumnStats) -> float:
        number = to_number(value)
        if number is None:
            return 0
        if stats.min == stats.max:
            if self.method == MIN_MAX:
                return (self.min_value + self.max_value) / 2
            if self.method == Z_SCORE:
                return 0
            return number
        if self.method == MIN_MAX:
            scaled = (number - stats.min) / (stats.max - stats.min)
            return scaled * (self.max_value - self.min_value) + self.min_value
        if self.method == Z_SCORE:
            return 0 if stats.std_dev == 0 else (number - stats.mean) / stats.std_dev
        if self.method == DECIMAL_SCALING:
            return number / decimal_divisor(stats.max_abs)
        return number

    def _selected(self, spec: DataTableSpec) -> list[int]:
        numeric = [c.name for c in spec.columns if c.type == "number"]
        if not numeric:
            raise ValueError("No numeric columns found in the input data.")
        selected = [spec.find_column_index(c) for c in self.number_columns if c in numeric]
        if not selected:
            raise ValueError(
                "No valid numeric columns selected for normalization. "
                f"Available numeric columns: {', '.join(numeric)}"
            )
        return selected

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        return list(in_specs)

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        if not inputs:
            raise ValueError("No input data provided. Please connect an input node.")
        table = inputs[0]
        selected = self._selected(table.spec)

        ctx.set_progress(0.1, "Analyzing data for normalization...")
        stats = {i: ColumnStats.from_values(table.column_values(i)) for i in selected}

        ctx.set_progress(0.5, "Applying normalization...")
        output = ctx.create_data_table(table.spec)
        for processed, row in enumerate(table):
            if processed % 100 == 0:
                ctx.check_canceled()
            cells = [
                Cell(cell.type, self.normalize(cell.value, stats[i])) if i in stats else cell
                for i, cell in enumerate(row.cells)
            ]
            output.add_row(f"normalized-{processed}", cells)

        ctx.set_progress(1.0, "Data normalization completed")
        return [output.close()]
