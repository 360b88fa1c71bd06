"""Partition node: splits one table into two by position, sampling or strata."""

import random
from collections.abc import Callable

from app.engine.context import ExecutionContext
from app.engine.data_table import DataTable, DataTableSpec
from app.engine.node_model import NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings

ABSOLUTE = "absolute"
RELATIVE = "relative"
TAKE_FROM_TOP = "take_from_top"
LINEAR_SAMPLING = "linear_sampling"
DRAW_RANDOMLY = "draw_randomly"
STRATIFIED_SAMPLING = "stratified_sampling"
MODES = (ABSOLUTE, RELATIVE, TAKE_FROM_TOP, LINEAR_SAMPLING, DRAW_RANDOMLY, STRATIFIED_SAMPLING)

_MODULUS = 2147483647


def park_miller(seed: int) -> Callable[[], float]:
    """Minimal-standard LCG returning floats in [0, 1)."""
    state = int(seed) % _MODULUS or 1

    def next_value() -> float:
        nonlocal state
        state = (state * 16807) % _MODULUS
        return (state - 1) / (_MODULUS - 1)

    return next_value


def _percent_count(value: float, total: int) -> int:
    return int(max(0.0, min(100.0, value)) / 100 * total)


def _draw(indices: list[int], count: int, rng: Callable[[], float]) -> list[int]:
    available = list(indices)
    drawn = []
    while len(drawn) < count and available:
        drawn.append(available.pop(int(rng() * len(available))))
    return drawn


def linear_sample(total: int, target: float) -> list[int]:
    """Evenly spaced indices that always include the first and last row."""
    if total <= 2:
        return list(range(total))
    count = min(max(2, int(target)), total)
    if count >= total:
        return list(range(total))
    step = (total - 1) / (count - 1)
    indices = {0, total - 1}
    indices.update(int(step * i + 0.5) for i in range(1, count - 1))
    return sorted(indices)


@register_node("partition", "Partition", "Data Manipulation", "Split a table into two partitions")
class PartitionNodeModel(NodeModel):
    output_ports = 2

    def __init__(self) -> None:
        super().__init__()
        self.mode = RELATIVE
        self.value: float = 50
        self.stratified_column = ""
        self.use_random_seed = False
        self.random_seed = 12345

    def load_settings(self, settings: NodeSettings) -> None:
        self.mode = settings.get_string("partition_mode", RELATIVE)
        self.value = settings.get_number("partition_value", 50)
        self.stratified_column = settings.get_string("stratified_column", "")
        self.use_random_seed = settings.get_boolean("use_random_seed", False)
        self.random_seed = settings.get_int("random_seed", 12345)

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("partition_mode", self.mode)
        settings.set("partition_value", self.value)
        settings.set("stratified_column", self.stratified_column)
        settings.set("use_random_seed", self.use_random_seed)
        settings.set("random_seed", self.random_seed)

    def validate_settings(self, settings: NodeSettings) -> None:
        mode = settings.get_string("partition_mode", "")
        value = settings.get_number("partition_value", -1)
        if mode not in MODES:
            raise ValueError(f"Invalid partition mode: {mode}")
        if value < 0:
            raise ValueError("Partition value must be non-negative")
        if mode == RELATIVE and value > 100:
            raise ValueError("Relative partition value must be between 0 and 100")
        if mode == STRATIFIED_SAMPLING and not settings.get_string("stratified_column", ""):
            raise ValueError("Stratified column must be specified for stratified sampling")

    def _rng(self) -> Callable[[], float]:
        return park_miller(self.random_seed) if self.use_random_seed else random.random

    def first_partition(self, table: DataTable) -> set[int]:
        total = table.size
        if self.mode in (ABSOLUTE, TAKE_FROM_TOP):
            return set(range(min(max(0, int(self.value)), total)))
        if self.mode == RELATIVE:
            return set(range(_percent_count(self.value, total)))
        if self.mode == LINEAR_SAMPLING:
            return set(linear_sample(total, self.value))
        if self.mode == DRAW_RANDOMLY:
            return set(_draw(list(range(total)), _percent_count(self.value, total), self._rng()))
        if self.mode == STRATIFIED_SAMPLING:
            index = table.spec.find_column_index(self.stratified_column)
            if index < 0:
                raise ValueError(f"Stratified column '{self.stratified_column}' not found")
            strata: dict[str, list[int]] = {}
            for i, row in enumerate(table):
                strata.setdefault(str(row.cells[index].value), []).append(i)
            chosen: set[int] = set()
            for members in strata.values():
                chosen.update(_draw(members, _percent_count(self.value, len(members)), self._rng()))
            return chosen
        raise ValueError(f"Unknown partition mode: {self.mode}")

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        if not in_specs:
            raise ValueError("No input specification provided")
        if self.mode == STRATIFIED_SAMPLING and self.stratified_column:
            if in_specs[0].find_column_index(self.stratified_column) < 0:
                raise ValueError(f"Stratified column '{self.stratified_column}' not found")
        return [in_specs[0], in_specs[0]]

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        if not inputs:
            raise ValueError("No input data provided")
        table = inputs[0]
        first = ctx.create_data_table(table.spec)
        second = ctx.create_data_table(table.spec)
        if table.size == 0:
            return [first.close(), second.close()]

        ctx.set_progress(0.3, "Determining partition strategy...")
        chosen = self.first_partition(table)

        ctx.set_progress(0.8, "Populating partitions...")
        ctx.check_canceled()
        for i, row in enumerate(table):
            (first if i in chosen else second).add_row(row.key, row.cells)

        ctx.set_progress(1.0, "Partition complete")
        return [first.close(), second.close()]
